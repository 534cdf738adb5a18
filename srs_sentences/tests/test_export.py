import asyncio

import pytest

from srs_sentences.errors import ConfigurationError, NothingToExportError
from srs_sentences.models.export import FieldSource
from srs_sentences.models.settings import AppSettings
from srs_sentences.models.word_entry import DefinitionSnapshot, SentenceItem, WordEntry
from srs_sentences.services.entry_store import EntryStore
from srs_sentences.services.export_service import (
    ExportCoordinator,
    build_tags,
    collect_export_targets,
    resolve_field_value,
)

MAPPING = {
    "Front": FieldSource.SENTENCE_BRACKET,
    "Back": FieldSource.SENTENCE_GLOSS,
    "Word": FieldSource.WORD,
    "Reading": FieldSource.READING,
    "Meaning": FieldSource.MEANING,
    "Number": FieldSource.MEANING_NUMBER,
    "Level": FieldSource.DIFFICULTY,
}


def make_settings(**changes) -> AppSettings:
    settings = AppSettings(
        anki_deck_name="Japanese::Sentences",
        anki_model_name="Japanese Sentence",
        anki_field_mappings={"Japanese Sentence": MAPPING},
        anki_tags="jp srs jp",
        anki_include_difficulty_tag=True,
        enable_annotations=True,
    )
    return settings.model_copy(update=changes)


def make_sentence(text: str, enabled: bool = True, **changes) -> SentenceItem:
    return SentenceItem(
        text=text,
        gloss=f"gloss of {text}",
        export_enabled=enabled,
        definition_snapshot=DefinitionSnapshot(index=2, text="to like"),
        difficulty="beginner",
        **changes,
    )


def make_store() -> EntryStore:
    entry = WordEntry(
        word="猫",
        sentences=[make_sentence("猫が好きです"), make_sentence("猫です", enabled=False), make_sentence("猫だ")],
    )
    return EntryStore([entry])


def test_targets_only_include_enabled_sentences():
    targets = collect_export_targets(make_store().entries)

    assert [target.sentence.text for target in targets] == ["猫が好きです", "猫だ"]


def test_tags_are_deduplicated_in_order():
    entry = WordEntry(word="猫")

    tags = build_tags(make_settings(), entry, make_sentence("猫だ"))

    assert tags == ["jp", "srs", "difficulty-beginner"]


def test_field_values_fall_back_when_annotations_unavailable(annotation_engine, kakasi):
    entry = WordEntry(word="猫")
    sentence = make_sentence("猫が好きです")

    value = asyncio.run(
        resolve_field_value(FieldSource.SENTENCE_RUBY, entry, sentence, make_settings(), False, annotation_engine)
    )
    reading = asyncio.run(
        resolve_field_value(FieldSource.READING, entry, sentence, make_settings(), False, annotation_engine)
    )

    assert value.value == "猫が好きです"
    assert value.sentence_cache is None
    assert reading.value == "猫"
    assert kakasi.calls == []


def test_reading_prefers_entry_reading(annotation_engine):
    entry = WordEntry(word="猫", reading="ねこ")

    result = asyncio.run(
        resolve_field_value(FieldSource.READING, entry, make_sentence("猫だ"), make_settings(), True, annotation_engine)
    )

    assert result.value == "ねこ"


def test_missing_deck_is_a_configuration_error(flashcard_client, annotation_engine):
    coordinator = ExportCoordinator(flashcard_client, annotation_engine)

    with pytest.raises(ConfigurationError):
        asyncio.run(coordinator.export(make_store(), make_settings(anki_deck_name=""), True))
    assert flashcard_client.field_calls == []


def test_nothing_selected_issues_no_call(flashcard_client, annotation_engine):
    store = EntryStore([WordEntry(word="猫", sentences=[make_sentence("猫です", enabled=False)])])
    coordinator = ExportCoordinator(flashcard_client, annotation_engine)

    with pytest.raises(NothingToExportError):
        asyncio.run(coordinator.export(store, make_settings(), True))
    assert flashcard_client.field_calls == []
    assert flashcard_client.added == []


def test_note_type_without_fields_is_a_configuration_error(flashcard_client, annotation_engine):
    flashcard_client.fields = []

    with pytest.raises(ConfigurationError):
        asyncio.run(ExportCoordinator(flashcard_client, annotation_engine).export(make_store(), make_settings(), True))
    assert flashcard_client.added == []


def test_partial_failure_is_reconciled_per_sentence(flashcard_client, annotation_engine):
    store = EntryStore(
        [
            WordEntry(
                word="猫",
                sentences=[make_sentence("猫が好きです"), make_sentence("猫です"), make_sentence("猫だ")],
            )
        ]
    )
    flashcard_client.results = [11, None, 33]

    summary = asyncio.run(ExportCoordinator(flashcard_client, annotation_engine).export(store, make_settings(), True))

    assert (summary.succeeded, summary.failed, summary.partial) == (2, 1, True)
    assert summary.message.startswith("Exported 2 sentences, but 1 failed")
    sentences = store.selected.sentences
    assert [(s.export_status, s.export_enabled) for s in sentences] == [
        ("exported", False),
        ("failed", True),
        ("exported", False),
    ]


def test_missing_trailing_results_count_as_failures(flashcard_client, annotation_engine):
    store = make_store()
    flashcard_client.results = [5]

    summary = asyncio.run(ExportCoordinator(flashcard_client, annotation_engine).export(store, make_settings(), True))

    assert (summary.succeeded, summary.failed) == (1, 1)
    assert store.selected.sentences[2].export_status == "failed"
    assert store.selected.sentences[1].export_status == "new"


def test_export_resolves_fields_and_caches_annotations(flashcard_client, annotation_engine):
    flashcard_client.fields = list(MAPPING) + ["Extra"]
    store = make_store()

    summary = asyncio.run(ExportCoordinator(flashcard_client, annotation_engine).export(store, make_settings(), True))

    assert summary.partial is False
    assert summary.message == "Success! Exported 2 sentences to Anki."
    note = flashcard_client.added[0][0]
    assert note.deck_name == "Japanese::Sentences"
    assert note.fields == {
        "Front": "猫[ねこ]が 好[す]きです",
        "Back": "gloss of 猫が好きです",
        "Word": "猫",
        "Reading": "ねこ",
        "Meaning": "to like",
        "Number": "2",
        "Level": "Beginner",
        "Extra": "",
    }
    entry = store.selected
    assert entry.sentences[0].annotation_cache.bracket == "猫[ねこ]が 好[す]きです"
    assert entry.sentences[1].annotation_cache is None
    assert entry.annotation_cache.kana == "ねこ"


def test_export_without_annotations_uses_plain_text(flashcard_client, annotation_engine):
    store = make_store()

    asyncio.run(ExportCoordinator(flashcard_client, annotation_engine).export(store, make_settings(), False))

    note = flashcard_client.added[0][0]
    assert note.fields["Front"] == "猫が好きです"
    assert store.selected.annotation_cache is None
