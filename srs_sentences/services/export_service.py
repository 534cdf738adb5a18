from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from srs_sentences.errors import ConfigurationError, NothingToExportError
from srs_sentences.models.annotation import AnnotationCacheEntry, AnnotationField
from srs_sentences.models.difficulty import difficulty_label
from srs_sentences.models.export import ExportItemResult, ExportSummary, FieldSource, FlashcardNote
from srs_sentences.models.settings import AppSettings
from srs_sentences.models.word_entry import SentenceItem, WordEntry
from srs_sentences.services.anki_client import FlashcardStoreClient
from srs_sentences.services.annotation_service import AnnotationEngine, resolve_annotated_text
from srs_sentences.services.entry_store import EntryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportTarget:
    entry: WordEntry
    sentence: SentenceItem


@dataclass(frozen=True)
class FieldValue:
    value: str
    entry_cache: Optional[AnnotationCacheEntry] = None
    sentence_cache: Optional[AnnotationCacheEntry] = None


@dataclass(frozen=True)
class NotePayload:
    fields: Dict[str, str]
    entry_cache: Optional[AnnotationCacheEntry]
    sentence_cache: Optional[AnnotationCacheEntry]


def collect_export_targets(entries: Sequence[WordEntry]) -> List[ExportTarget]:
    return [
        ExportTarget(entry=entry, sentence=sentence)
        for entry in entries
        for sentence in entry.sentences
        if sentence.export_enabled
    ]


def build_tags(settings: AppSettings, entry: WordEntry, sentence: SentenceItem) -> List[str]:
    tags = [tag for tag in settings.anki_tags.split() if tag]
    if settings.anki_include_difficulty_tag and sentence.difficulty:
        tags.append(f"difficulty-{sentence.difficulty}")
    return list(dict.fromkeys(tags))


async def _annotate_word(
    engine: AnnotationEngine,
    entry: WordEntry,
    settings: AppSettings,
    available: bool,
    field: AnnotationField,
    cache: Optional[AnnotationCacheEntry],
) -> FieldValue:
    if not available or not entry.word.strip():
        return FieldValue(entry.word)
    value, updated = await resolve_annotated_text(engine, entry.word, settings.kana_mode, field, cache)
    return FieldValue(value, entry_cache=updated)


async def _annotate_sentence(
    engine: AnnotationEngine,
    sentence: SentenceItem,
    settings: AppSettings,
    available: bool,
    field: AnnotationField,
    cache: Optional[AnnotationCacheEntry],
) -> FieldValue:
    if not available or not sentence.text.strip():
        return FieldValue(sentence.text)
    value, updated = await resolve_annotated_text(engine, sentence.text, settings.kana_mode, field, cache)
    return FieldValue(value, sentence_cache=updated)


async def resolve_field_value(
    source: FieldSource,
    entry: WordEntry,
    sentence: SentenceItem,
    settings: AppSettings,
    annotations_available: bool,
    engine: AnnotationEngine,
    entry_cache: Optional[AnnotationCacheEntry] = None,
    sentence_cache: Optional[AnnotationCacheEntry] = None,
) -> FieldValue:
    snapshot = sentence.definition_snapshot
    if source is FieldSource.EMPTY:
        return FieldValue("")
    if source is FieldSource.WORD:
        return FieldValue(entry.word)
    if source in (FieldSource.READING, FieldSource.WORD_KANA):
        if entry.reading:
            return FieldValue(entry.reading)
        return await _annotate_word(engine, entry, settings, annotations_available, "kana", entry_cache)
    if source is FieldSource.WORD_BRACKET:
        return await _annotate_word(engine, entry, settings, annotations_available, "bracket", entry_cache)
    if source is FieldSource.WORD_RUBY:
        return await _annotate_word(engine, entry, settings, annotations_available, "ruby_html", entry_cache)
    if source is FieldSource.MEANING:
        return FieldValue(snapshot.text if snapshot else "")
    if source is FieldSource.MEANING_NUMBER:
        return FieldValue(str(snapshot.index) if snapshot else "")
    if source is FieldSource.SENTENCE:
        return FieldValue(sentence.text)
    if source is FieldSource.SENTENCE_KANA:
        return await _annotate_sentence(engine, sentence, settings, annotations_available, "kana", sentence_cache)
    if source is FieldSource.SENTENCE_BRACKET:
        return await _annotate_sentence(engine, sentence, settings, annotations_available, "bracket", sentence_cache)
    if source is FieldSource.SENTENCE_RUBY:
        return await _annotate_sentence(engine, sentence, settings, annotations_available, "ruby_html", sentence_cache)
    if source is FieldSource.SENTENCE_GLOSS:
        return FieldValue(sentence.gloss)
    if source is FieldSource.DIFFICULTY:
        return FieldValue(difficulty_label(sentence.difficulty) if sentence.difficulty else "")
    if source is FieldSource.NOTES:
        return FieldValue(sentence.notes)
    raise ValueError(f"Unhandled field source: {source!r}")


async def build_note_fields(
    field_names: Sequence[str],
    mapping: Mapping[str, FieldSource],
    entry: WordEntry,
    sentence: SentenceItem,
    settings: AppSettings,
    annotations_available: bool,
    engine: AnnotationEngine,
    entry_cache: Optional[AnnotationCacheEntry] = None,
) -> NotePayload:
    sentence_cache = sentence.annotation_cache
    fields: Dict[str, str] = {}
    for field_name in field_names:
        source = FieldSource(mapping.get(field_name, FieldSource.EMPTY))
        result = await resolve_field_value(
            source,
            entry,
            sentence,
            settings,
            annotations_available,
            engine,
            entry_cache=entry_cache,
            sentence_cache=sentence_cache,
        )
        fields[field_name] = result.value
        if result.entry_cache is not None:
            entry_cache = result.entry_cache
        if result.sentence_cache is not None:
            sentence_cache = result.sentence_cache
    return NotePayload(fields=fields, entry_cache=entry_cache, sentence_cache=sentence_cache)


def reconcile_entry(
    entry: WordEntry,
    outcomes: Mapping[str, bool],
    sentence_caches: Mapping[str, AnnotationCacheEntry],
    entry_cache: Optional[AnnotationCacheEntry],
    engine: AnnotationEngine,
    settings: AppSettings,
) -> WordEntry:
    touched = False
    sentences: List[SentenceItem] = []
    for sentence in entry.sentences:
        changes = {}
        if sentence.id in outcomes:
            succeeded = outcomes[sentence.id]
            changes["export_status"] = "exported" if succeeded else "failed"
            changes["export_enabled"] = not succeeded
        cache = sentence_caches.get(sentence.id)
        if cache is not None and cache.key == engine.build_key(sentence.text, settings.kana_mode):
            changes["annotation_cache"] = cache
        if changes:
            touched = True
            sentences.append(sentence.model_copy(update=changes))
        else:
            sentences.append(sentence)

    update = {}
    if touched:
        update["sentences"] = sentences
    if entry_cache is not None and entry_cache.key == engine.build_key(entry.word, settings.kana_mode):
        update["annotation_cache"] = entry_cache
    if not update:
        return entry
    return entry.model_copy(update=update)


def summarize(succeeded: int, failed: int, items: List[ExportItemResult]) -> ExportSummary:
    if failed:
        message = f"Exported {succeeded} sentences, but {failed} failed. Check AnkiConnect or field mappings."
    else:
        message = f"Success! Exported {succeeded} sentences to Anki."
    return ExportSummary(succeeded=succeeded, failed=failed, partial=failed > 0, message=message, items=items)


class ExportCoordinator:
    def __init__(self, client: FlashcardStoreClient, engine: AnnotationEngine) -> None:
        self.client = client
        self.engine = engine

    async def prepare_notes(
        self,
        targets: Sequence[ExportTarget],
        settings: AppSettings,
        annotations_available: bool,
    ) -> Tuple[List[FlashcardNote], Dict[str, AnnotationCacheEntry], Dict[str, AnnotationCacheEntry]]:
        field_names = await self.client.list_fields(settings.anki_model_name)
        if not field_names:
            raise ConfigurationError("Selected note type has no fields. Check Settings → AnkiConnect.")
        mapping = settings.anki_field_mappings.get(settings.anki_model_name, {})

        entry_caches: Dict[str, AnnotationCacheEntry] = {}
        sentence_caches: Dict[str, AnnotationCacheEntry] = {}
        notes: List[FlashcardNote] = []
        for target in targets:
            payload = await build_note_fields(
                field_names,
                mapping,
                target.entry,
                target.sentence,
                settings,
                annotations_available,
                self.engine,
                entry_cache=entry_caches.get(target.entry.id, target.entry.annotation_cache),
            )
            if payload.entry_cache is not None and payload.entry_cache != target.entry.annotation_cache:
                entry_caches[target.entry.id] = payload.entry_cache
            if payload.sentence_cache is not None and payload.sentence_cache != target.sentence.annotation_cache:
                sentence_caches[target.sentence.id] = payload.sentence_cache
            notes.append(
                FlashcardNote(
                    deck_name=settings.anki_deck_name,
                    model_name=settings.anki_model_name,
                    fields=payload.fields,
                    tags=build_tags(settings, target.entry, target.sentence),
                )
            )
        return notes, entry_caches, sentence_caches

    async def export(self, store: EntryStore, settings: AppSettings, annotations_available: bool) -> ExportSummary:
        if not settings.anki_deck_name or not settings.anki_model_name:
            raise ConfigurationError("Missing deck or note type (Settings → AnkiConnect).")
        targets = collect_export_targets(store.entries)
        if not targets:
            raise NothingToExportError(
                "No sentences selected for export. Use the Export checkbox on sentences first."
            )

        notes, entry_caches, sentence_caches = await self.prepare_notes(targets, settings, annotations_available)
        results = list(await self.client.add_notes(notes))
        if len(results) < len(targets):
            logger.warning("Flashcard store returned %d results for %d notes", len(results), len(targets))
            results.extend([None] * (len(targets) - len(results)))

        outcomes: Dict[str, bool] = {}
        items: List[ExportItemResult] = []
        succeeded = failed = 0
        for target, note_id in zip(targets, results):
            if note_id:
                succeeded += 1
                outcomes[target.sentence.id] = True
                items.append(
                    ExportItemResult(
                        entry_id=target.entry.id, sentence_id=target.sentence.id, status="exported", note_id=note_id
                    )
                )
            else:
                failed += 1
                outcomes[target.sentence.id] = False
                items.append(ExportItemResult(entry_id=target.entry.id, sentence_id=target.sentence.id, status="failed"))

        store.update_all(
            lambda entry: reconcile_entry(
                entry,
                outcomes,
                sentence_caches,
                entry_caches.get(entry.id),
                self.engine,
                settings,
            )
        )
        summary = summarize(succeeded, failed, items)
        logger.info("Export finished: %d succeeded, %d failed", succeeded, failed)
        return summary
