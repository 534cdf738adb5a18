import asyncio

from srs_sentences.models.annotation import AnnotationCacheEntry
from srs_sentences.models.word_entry import SentenceItem, WordEntry
from srs_sentences.services.annotation_service import (
    AnnotationEngine,
    AnnotationTokens,
    build_key,
    commit_entry_cache,
    commit_sentence_cache,
    ensure_entry,
    resolve_annotated_text,
    to_bracket_notation,
)

RUBY_SENTENCE = (
    "<ruby>猫<rp>(</rp><rt>ねこ</rt><rp>)</rp></ruby>が"
    "<ruby>好<rp>(</rp><rt>す</rt><rp>)</rp></ruby>きです"
)


def test_build_key_depends_on_mode_and_text():
    assert build_key("猫", "hiragana") == build_key("猫", "hiragana")
    assert build_key("猫", "hiragana") != build_key("猫", "katakana")
    assert build_key("猫", "hiragana") != build_key("犬", "hiragana")


def test_convert_kana_and_ruby(annotation_engine):
    assert asyncio.run(annotation_engine.convert("猫が好きです", "hiragana")) == "ねこがすきです"
    assert asyncio.run(annotation_engine.convert("猫が好きです", "katakana")) == "ネコガスキデス"
    assert asyncio.run(annotation_engine.convert("猫が好きです", "hiragana", with_ruby_markup=True)) == RUBY_SENTENCE


def test_ruby_keeps_okurigana_outside(annotation_engine):
    ruby = asyncio.run(annotation_engine.convert("食べる", "hiragana", with_ruby_markup=True))

    assert ruby == "<ruby>食<rp>(</rp><rt>た</rt><rp>)</rp></ruby>べる"
    assert to_bracket_notation(ruby) == "食[た]べる"


def test_bracket_inserts_space_before_kanji_base():
    assert to_bracket_notation(RUBY_SENTENCE) == "猫[ねこ]が 好[す]きです"
    assert to_bracket_notation("plain text") == "plain text"


def test_ensure_entry_hit_does_no_work(annotation_engine, kakasi):
    first = asyncio.run(ensure_entry(annotation_engine, "猫", "hiragana", None, "kana"))
    second = asyncio.run(ensure_entry(annotation_engine, "猫", "hiragana", first, "kana"))

    assert second is first
    assert kakasi.calls == ["猫"]


def test_ensure_entry_fills_fields_independently(annotation_engine, kakasi):
    kana = asyncio.run(ensure_entry(annotation_engine, "食べる", "hiragana", None, "kana"))
    both = asyncio.run(ensure_entry(annotation_engine, "食べる", "hiragana", kana, "ruby_html"))

    assert both.kana == "たべる"
    assert both.ruby_html.startswith("<ruby>食")
    assert both.bracket is None
    assert both.key == kana.key


def test_ensure_entry_discards_stale_fields(annotation_engine):
    stale = AnnotationCacheEntry(key=build_key("犬", "hiragana"), kana="いぬ", ruby_html="<ruby>犬</ruby>")

    fresh = asyncio.run(ensure_entry(annotation_engine, "猫", "hiragana", stale, "kana"))

    assert fresh.key == build_key("猫", "hiragana")
    assert fresh.kana == "ねこ"
    assert fresh.ruby_html is None


def test_bracket_reuses_cached_ruby(annotation_engine, kakasi):
    key = build_key("食べる", "hiragana")
    cached = AnnotationCacheEntry(key=key, ruby_html="<ruby>食<rp>(</rp><rt>た</rt><rp>)</rp></ruby>べる")

    result = asyncio.run(ensure_entry(annotation_engine, "食べる", "hiragana", cached, "bracket"))

    assert result.bracket == "食[た]べる"
    assert kakasi.calls == []


def test_engine_failure_falls_back_to_plain_text(broken_engine):
    value, cache = asyncio.run(resolve_annotated_text(broken_engine, "猫", "hiragana", "kana", None))

    assert value == "猫"
    assert cache is None


def test_engine_init_is_single_flight():
    created = []

    def factory():
        created.append(object())
        return created[-1]

    engine = AnnotationEngine(factory=factory)

    async def init_twice():
        await asyncio.gather(engine.init(), engine.init(), engine.init())

    asyncio.run(init_twice())

    assert len(created) == 1
    assert engine.status == "ready"


def test_engine_init_failure_reports_error_and_can_retry():
    attempts = []

    def factory():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("no dictionary")
        return object()

    engine = AnnotationEngine(factory=factory)

    async def first_attempt():
        try:
            await engine.init()
        except RuntimeError:
            return engine.status
        return None

    assert asyncio.run(first_attempt()) == "error"
    assert engine.error == "no dictionary"
    asyncio.run(engine.init())
    assert engine.is_ready()


def test_commit_is_dropped_when_text_changed(annotation_engine):
    entry = WordEntry(word="猫")
    cache = asyncio.run(ensure_entry(annotation_engine, "猫", "hiragana", None, "kana"))
    edited = entry.model_copy(update={"word": "犬"})

    assert commit_entry_cache(edited, cache, annotation_engine, "hiragana") is edited
    assert commit_entry_cache(entry, cache, annotation_engine, "hiragana").annotation_cache == cache


def test_sentence_commit_guards_on_current_text(annotation_engine):
    sentence = SentenceItem(text="猫が好きです")
    entry = WordEntry(word="猫", sentences=[sentence])
    cache = asyncio.run(ensure_entry(annotation_engine, sentence.text, "hiragana", None, "bracket"))

    committed = commit_sentence_cache(entry, sentence.id, cache, annotation_engine, "hiragana")
    stale_mode = commit_sentence_cache(entry, sentence.id, cache, annotation_engine, "katakana")

    assert committed.sentences[0].annotation_cache.bracket == "猫[ねこ]が 好[す]きです"
    assert stale_mode is entry


def test_independent_misses_commit_the_same_cache(annotation_engine):
    entry = WordEntry(word="食べる")
    first = asyncio.run(ensure_entry(annotation_engine, "食べる", "hiragana", None, "ruby_html"))
    second = asyncio.run(ensure_entry(annotation_engine, "食べる", "hiragana", None, "ruby_html"))

    assert first == second
    after_first = commit_entry_cache(entry, first, annotation_engine, "hiragana")
    after_both = commit_entry_cache(after_first, second, annotation_engine, "hiragana")
    assert after_first.annotation_cache == commit_entry_cache(entry, second, annotation_engine, "hiragana").annotation_cache
    assert after_both is after_first


def test_tokens_cancel_by_target():
    tokens = AnnotationTokens()
    word = tokens.begin(("entry", "a"))
    sentence = tokens.begin(("sentence", "a", "s1"))
    other = tokens.begin(("entry", "b"))

    cancelled = tokens.cancel_where(lambda target: target[1] == "a")
    tokens.finish(("entry", "b"), other)

    assert cancelled == 2
    assert word.cancelled and sentence.cancelled
    assert not other.cancelled
    assert tokens.in_flight() == 2
