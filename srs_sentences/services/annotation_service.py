from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

import pykakasi

from srs_sentences.models.annotation import AnnotationCacheEntry, AnnotationField, AnnotationStatus, KanaMode
from srs_sentences.models.word_entry import WordEntry

logger = logging.getLogger(__name__)

ENGINE_ID = "pykakasi"
ENGINE_VERSION = "1"

KANJI_RE = re.compile(r"[一-龯々]")
RUBY_RE = re.compile(r"<ruby>(.*?)<rt>(.*?)</rt>.*?</ruby>")
RP_RE = re.compile(r"<rp>.*?</rp>")


def build_key(text: str, mode: KanaMode, engine_id: str = ENGINE_ID, engine_version: str = ENGINE_VERSION) -> str:
    raw = "|".join([engine_id, engine_version, mode, text])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _has_kanji(text: str) -> bool:
    return bool(KANJI_RE.search(text))


def _split_okurigana(orig: str, reading: str) -> Tuple[str, str, str, int, int]:
    """Strip kana shared by the surface form and its reading at either end.

    Returns (prefix, base, suffix, reading_start, reading_end) where the reading
    of ``base`` is ``reading[reading_start:reading_end]``.
    """
    start = 0
    while start < len(orig) - 1 and start < len(reading) and not _has_kanji(orig[start]) and orig[start] == reading[start]:
        start += 1
    end_orig = len(orig)
    end_reading = len(reading)
    while (
        end_orig - 1 > start
        and end_reading - 1 > start
        and not _has_kanji(orig[end_orig - 1])
        and orig[end_orig - 1] == reading[end_reading - 1]
    ):
        end_orig -= 1
        end_reading -= 1
    return orig[:start], orig[start:end_orig], orig[end_orig:], start, end_reading


def render_ruby(tokens: List[Dict[str, str]], mode: KanaMode) -> str:
    parts: List[str] = []
    for token in tokens:
        orig = token.get("orig", "")
        hira = token.get("hira", "")
        if not _has_kanji(orig) or not hira:
            parts.append(orig)
            continue
        reading = token.get("kana", hira) if mode == "katakana" else hira
        prefix, base, suffix, start, end = _split_okurigana(orig, hira)
        rt = reading[start:end]
        parts.append(f"{prefix}<ruby>{base}<rp>(</rp><rt>{rt}</rt><rp>)</rp></ruby>{suffix}")
    return "".join(parts)


def to_bracket_notation(ruby_html: str) -> str:
    """Convert ruby markup into the flashcard store's ``base[reading]`` notation."""
    cleaned = RP_RE.sub("", ruby_html)
    result = ""
    last_index = 0
    for match in RUBY_RE.finditer(cleaned):
        result += cleaned[last_index:match.start()]
        base = match.group(1) or ""
        reading = match.group(2) or ""
        prev_char = result[-1:]
        prefix = " " if _has_kanji(base) and prev_char and prev_char != " " else ""
        result += f"{prefix}{base}[{reading}]"
        last_index = match.end()
    result += cleaned[last_index:]
    return result


class AnnotationEngine:
    """Kana/ruby converter with single-flight initialization."""

    engine_id = ENGINE_ID
    engine_version = ENGINE_VERSION

    def __init__(self, factory: Optional[Callable[[], Any]] = None) -> None:
        self._factory = factory or pykakasi.kakasi
        self._converter: Any = None
        self._init_task: Optional[asyncio.Task] = None
        self._error: Optional[str] = None

    @property
    def status(self) -> AnnotationStatus:
        if self._converter is not None:
            return "ready"
        if self._init_task is not None:
            return "loading"
        if self._error:
            return "error"
        return "idle"

    @property
    def error(self) -> Optional[str]:
        return self._error

    def is_ready(self) -> bool:
        return self._converter is not None

    async def init(self) -> None:
        if self._converter is not None:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._load())
        await asyncio.shield(self._init_task)

    async def _load(self) -> None:
        try:
            converter = await asyncio.to_thread(self._factory)
        except Exception as exc:
            self._error = str(exc)
            self._init_task = None
            logger.warning("Annotation engine failed to initialize: %s", exc)
            raise
        self._converter = converter
        self._error = None
        self._init_task = None
        logger.info("Annotation engine ready (%s v%s)", self.engine_id, self.engine_version)

    async def convert(self, text: str, mode: KanaMode, with_ruby_markup: bool = False) -> str:
        await self.init()
        tokens = await asyncio.to_thread(self._converter.convert, text)
        if with_ruby_markup:
            return render_ruby(tokens, mode)
        key = "kana" if mode == "katakana" else "hira"
        return "".join(token.get(key) or token.get("orig", "") for token in tokens)

    def build_key(self, text: str, mode: KanaMode) -> str:
        return build_key(text, mode, self.engine_id, self.engine_version)


async def ensure_entry(
    engine: AnnotationEngine,
    text: str,
    mode: KanaMode,
    existing: Optional[AnnotationCacheEntry],
    field: AnnotationField,
) -> AnnotationCacheEntry:
    key = engine.build_key(text, mode)
    entry = existing if existing is not None and existing.key == key else AnnotationCacheEntry(key=key)
    if getattr(entry, field) is not None:
        return entry

    if field == "kana":
        value = await engine.convert(text, mode, with_ruby_markup=False)
    elif field == "ruby_html":
        value = await engine.convert(text, mode, with_ruby_markup=True)
    elif field == "bracket":
        ruby_html = entry.ruby_html if entry.ruby_html is not None else await engine.convert(text, mode, True)
        value = to_bracket_notation(ruby_html)
    else:
        raise ValueError(f"Unknown annotation field: {field}")
    return entry.model_copy(update={field: value})


async def resolve_annotated_text(
    engine: AnnotationEngine,
    text: str,
    mode: KanaMode,
    field: AnnotationField,
    existing: Optional[AnnotationCacheEntry],
) -> Tuple[str, Optional[AnnotationCacheEntry]]:
    """Annotated text plus the cache entry to store; plain text when the engine fails."""
    try:
        entry = await ensure_entry(engine, text, mode, existing, field)
    except Exception as exc:
        logger.warning("Annotation failed, falling back to plain text: %s", exc)
        return text, None
    value = getattr(entry, field)
    return (value if value is not None else text), entry


def commit_entry_cache(entry: WordEntry, cache: AnnotationCacheEntry, engine: AnnotationEngine, mode: KanaMode) -> WordEntry:
    if engine.build_key(entry.word, mode) != cache.key or entry.annotation_cache == cache:
        return entry
    return entry.model_copy(update={"annotation_cache": cache})


def commit_sentence_cache(
    entry: WordEntry,
    sentence_id: str,
    cache: AnnotationCacheEntry,
    engine: AnnotationEngine,
    mode: KanaMode,
) -> WordEntry:
    sentence = entry.find_sentence(sentence_id)
    if sentence is None or engine.build_key(sentence.text, mode) != cache.key or sentence.annotation_cache == cache:
        return entry
    sentences = [
        item.model_copy(update={"annotation_cache": cache}) if item.id == sentence_id else item
        for item in entry.sentences
    ]
    return entry.model_copy(update={"sentences": sentences})


class CancelToken:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class AnnotationTokens:
    """Tracks in-flight annotation requests so edits can invalidate them."""

    def __init__(self) -> None:
        self._tokens: Dict[Hashable, List[CancelToken]] = {}

    def begin(self, target: Hashable) -> CancelToken:
        token = CancelToken()
        self._tokens.setdefault(target, []).append(token)
        return token

    def finish(self, target: Hashable, token: CancelToken) -> None:
        tokens = self._tokens.get(target, [])
        if token in tokens:
            tokens.remove(token)
        if not tokens:
            self._tokens.pop(target, None)

    def cancel_where(self, predicate: Callable[[Hashable], bool]) -> int:
        cancelled = 0
        for target, tokens in self._tokens.items():
            if predicate(target):
                for token in tokens:
                    token.cancel()
                    cancelled += 1
        return cancelled

    def in_flight(self) -> int:
        return sum(len(tokens) for tokens in self._tokens.values())
