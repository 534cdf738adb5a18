from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Hashable, Optional, Set, Tuple

from srs_sentences.errors import (
    ConfigurationError,
    DefinitionNotFoundError,
    EntryInvariantError,
    OperationBusyError,
    SentenceDeckError,
    SentenceNotFoundError,
)
from srs_sentences.models.annotation import AnnotationField, AnnotationRead
from srs_sentences.models.export import ExportSummary
from srs_sentences.models.settings import AppSettings, SettingsRead, SettingsUpdate
from srs_sentences.models.word_entry import (
    DefinitionLookupRead,
    EntryListRead,
    EntryUpdate,
    SentenceItem,
    SentenceUpdate,
    WordEntry,
)
from srs_sentences.services.anki_client import FlashcardStoreClient
from srs_sentences.services.annotation_service import (
    AnnotationEngine,
    AnnotationTokens,
    commit_entry_cache,
    commit_sentence_cache,
    resolve_annotated_text,
)
from srs_sentences.services.definition_parser import (
    apply_count_preset,
    collapse_duplicate_indices,
    merge_counts,
    parse_definitions,
)
from srs_sentences.services.dictionary_client import JpdbDictionaryClient
from srs_sentences.services.entry_store import EntryStore
from srs_sentences.services.export_service import ExportCoordinator
from srs_sentences.services.generation_service import GenerationOutcome, SentenceGenerationEngine, clear_generated
from srs_sentences.services.llm_service import LLMClient
from srs_sentences.services.persistence_service import PersistedState, PersistenceGateway
from srs_sentences.services.templates import validate_template_macros

logger = logging.getLogger(__name__)

DictionaryFactory = Callable[[str], JpdbDictionaryClient]


class BusyFlags:
    """One running invocation per (operation, target)."""

    def __init__(self) -> None:
        self._active: Set[Tuple[str, Hashable]] = set()

    def is_busy(self, operation: str, target: Hashable = None) -> bool:
        return (operation, target) in self._active

    @asynccontextmanager
    async def hold(self, operation: str, target: Hashable = None) -> AsyncIterator[None]:
        key = (operation, target)
        if key in self._active:
            raise OperationBusyError(f"{operation} is already running" + (f" for {target}" if target else ""))
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)


def entry_target(entry_id: str) -> Tuple[str, str]:
    return ("entry", entry_id)


def sentence_target(entry_id: str, sentence_id: str) -> Tuple[str, str, str]:
    return ("sentence", entry_id, sentence_id)


def _require_sentence(entry: WordEntry, sentence_id: str) -> SentenceItem:
    sentence = entry.find_sentence(sentence_id)
    if sentence is None:
        raise SentenceNotFoundError(f"Sentence {sentence_id} not found")
    return sentence


def _replace_sentence(entry: WordEntry, sentence_id: str, **changes) -> WordEntry:
    sentence = _require_sentence(entry, sentence_id)
    if all(getattr(sentence, name) == value for name, value in changes.items()):
        return entry
    updated = sentence.model_copy(update=changes)
    return entry.model_copy(
        update={"sentences": [updated if item.id == sentence_id else item for item in entry.sentences]}
    )


class Workspace:
    def __init__(
        self,
        llm_client: LLMClient,
        flashcard_client: FlashcardStoreClient,
        annotation_engine: Optional[AnnotationEngine] = None,
        gateway: Optional[PersistenceGateway] = None,
        dictionary_factory: Optional[DictionaryFactory] = None,
    ) -> None:
        self.store = EntryStore()
        self.settings = AppSettings()
        self.difficulty = "beginner"
        self.annotation_engine = annotation_engine or AnnotationEngine()
        self.flashcard_client = flashcard_client
        self.gateway = gateway
        self.dictionary_factory = dictionary_factory or (lambda api_key: JpdbDictionaryClient(api_key=api_key))
        self.tokens = AnnotationTokens()
        self.busy = BusyFlags()
        self.generation = SentenceGenerationEngine(llm_client)
        self.exporter = ExportCoordinator(flashcard_client, self.annotation_engine)

    # Persistence
    def load(self) -> bool:
        if self.gateway is None:
            return False
        state = self.gateway.load()
        if state is None:
            return False
        try:
            self.store.replace_all(state.entries, state.selected_id)
        except EntryInvariantError as exc:
            logger.warning("Ignoring stored state that breaks entry invariants: %s", exc)
            return False
        self.settings = state.settings
        self.difficulty = state.difficulty
        logger.info("Loaded %d word entries from storage", len(self.store.entries))
        return True

    def snapshot(self) -> PersistedState:
        return PersistedState(
            entries=self.store.entries,
            selected_id=self.store.selected_id,
            settings=self.settings,
            difficulty=self.difficulty,
        )

    def persist(self) -> None:
        if self.gateway is not None:
            self.gateway.save(self.snapshot())

    # Entries
    def list_entries(self) -> EntryListRead:
        return EntryListRead(selected_id=self.store.selected_id, entries=self.store.entries)

    def create_entry(self) -> WordEntry:
        entry = self.store.create()
        self.persist()
        return entry

    def select_entry(self, entry_id: str) -> WordEntry:
        entry = self.store.select(entry_id)
        self.persist()
        return entry

    def remove_entry(self, entry_id: str) -> None:
        self.store.remove(entry_id)
        self.tokens.cancel_where(lambda target: target[1] == entry_id)
        self.persist()

    def update_entry_fields(self, entry_id: str, data: EntryUpdate) -> WordEntry:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        def _apply(entry: WordEntry) -> WordEntry:
            if all(getattr(entry, name) == value for name, value in changes.items()):
                return entry
            return entry.model_copy(update=changes)

        before = self.store.get(entry_id)
        entry = self.store.update(entry_id, _apply)
        if entry.word != before.word:
            self.tokens.cancel_where(lambda target: target == entry_target(entry_id))
        self.persist()
        return entry

    def set_definitions_raw(self, entry_id: str, raw: str) -> WordEntry:
        preset = self.settings.default_count_preset

        def _apply(entry: WordEntry) -> WordEntry:
            parsed = apply_count_preset(parse_definitions(raw), preset)
            definitions = collapse_duplicate_indices(merge_counts(parsed, entry.definitions))
            return entry.model_copy(update={"definitions_raw": raw, "definitions": definitions, "generations": []})

        entry = self.store.update(entry_id, _apply)
        self.persist()
        return entry

    def set_definition_count(self, entry_id: str, index: int, count: int) -> WordEntry:
        def _apply(entry: WordEntry) -> WordEntry:
            if not any(definition.index == index for definition in entry.definitions):
                raise DefinitionNotFoundError(f"Definition {index} not found")
            definitions = [
                definition.model_copy(update={"count": count}) if definition.index == index else definition
                for definition in entry.definitions
            ]
            return entry.model_copy(update={"definitions": definitions})

        entry = self.store.update(entry_id, _apply)
        self.persist()
        return entry

    async def lookup_definitions(self, entry_id: str) -> DefinitionLookupRead:
        async with self.busy.hold("lookup", entry_id):
            entry = self.store.get(entry_id)
            word = entry.word.strip()
            if not word:
                return DefinitionLookupRead(entry=entry, filled=False, message="Enter a word first.")
            if not self.settings.dictionary_api_key:
                logger.warning("Dictionary lookup skipped: no dictionary API key configured")
                return DefinitionLookupRead(
                    entry=entry, filled=False, message="Missing dictionary API key (Settings → Dictionary)."
                )
            try:
                result = await self.dictionary_factory(self.settings.dictionary_api_key).lookup(word)
            except SentenceDeckError as exc:
                logger.warning("Dictionary lookup for %r failed: %s", word, exc)
                return DefinitionLookupRead(entry=entry, filled=False, message=str(exc))
            if result is None or not result.meanings:
                return DefinitionLookupRead(entry=entry, filled=False, message=f"No dictionary entry for {word}.")

            entry = self.set_definitions_raw(entry_id, result.as_definitions_raw())
            if result.reading and not entry.reading:
                entry = self.update_entry_fields(entry_id, EntryUpdate(reading=result.reading))
            return DefinitionLookupRead(entry=entry, filled=True)

    # Sentence generation
    async def generate(self, entry_id: str, difficulty: Optional[str] = None) -> GenerationOutcome:
        async with self.busy.hold("generate", entry_id):
            try:
                return await self.generation.run(self.store, entry_id, self.settings, difficulty or self.difficulty)
            finally:
                self.persist()

    async def analyze(self, entry_id: str) -> WordEntry:
        async with self.busy.hold("analyze", entry_id):
            entry = await self.generation.analyze(self.store, entry_id, self.settings)
            self.persist()
            return entry

    def clear_sentences(self, entry_id: str) -> WordEntry:
        entry = self.store.update(entry_id, clear_generated)
        self.tokens.cancel_where(lambda target: target[0] == "sentence" and target[1] == entry_id)
        self.persist()
        return entry

    # Sentences
    def edit_sentence(self, entry_id: str, sentence_id: str, data: SentenceUpdate) -> WordEntry:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        before = _require_sentence(self.store.get(entry_id), sentence_id)
        content = {name: value for name, value in changes.items() if name in ("text", "gloss", "notes")}
        if any(getattr(before, name) != value for name, value in content.items()):
            changes["source"] = "edited"
        entry = self.store.update(entry_id, lambda current: _replace_sentence(current, sentence_id, **changes))
        if content.get("text", before.text) != before.text:
            self.tokens.cancel_where(lambda target: target == sentence_target(entry_id, sentence_id))
        self.persist()
        return entry

    def set_sentence_export(self, entry_id: str, sentence_id: str, enabled: bool) -> WordEntry:
        entry = self.store.update(
            entry_id, lambda current: _replace_sentence(current, sentence_id, export_enabled=enabled)
        )
        self.persist()
        return entry

    def toggle_all_exports(self, entry_id: str, enabled: bool) -> WordEntry:
        def _apply(entry: WordEntry) -> WordEntry:
            if all(sentence.export_enabled == enabled for sentence in entry.sentences):
                return entry
            sentences = [sentence.model_copy(update={"export_enabled": enabled}) for sentence in entry.sentences]
            return entry.model_copy(update={"sentences": sentences})

        entry = self.store.update(entry_id, _apply)
        self.persist()
        return entry

    def remove_sentence(self, entry_id: str, sentence_id: str) -> WordEntry:
        def _apply(entry: WordEntry) -> WordEntry:
            _require_sentence(entry, sentence_id)
            return entry.model_copy(
                update={"sentences": [sentence for sentence in entry.sentences if sentence.id != sentence_id]}
            )

        entry = self.store.update(entry_id, _apply)
        self.tokens.cancel_where(lambda target: target == sentence_target(entry_id, sentence_id))
        self.persist()
        return entry

    # Annotations
    async def annotate(
        self,
        entry_id: str,
        field: AnnotationField,
        sentence_id: Optional[str] = None,
    ) -> AnnotationRead:
        entry = self.store.get(entry_id)
        if sentence_id is None:
            target = entry_target(entry_id)
            text, existing = entry.word, entry.annotation_cache
        else:
            sentence = _require_sentence(entry, sentence_id)
            target = sentence_target(entry_id, sentence_id)
            text, existing = sentence.text, sentence.annotation_cache
        if not self.settings.enable_annotations or not text.strip():
            return AnnotationRead(field=field, value=text, annotated=False)

        mode = self.settings.kana_mode
        token = self.tokens.begin(target)
        try:
            value, cache = await resolve_annotated_text(self.annotation_engine, text, mode, field, existing)
            if cache is None:
                return AnnotationRead(field=field, value=text, annotated=False)
            if token.cancelled or self.store.find(entry_id) is None:
                logger.debug("Dropping annotation result for cancelled target %s", target)
                return AnnotationRead(field=field, value=value, annotated=True, committed=False)

            if sentence_id is None:
                updated = self.store.update(
                    entry_id, lambda current: commit_entry_cache(current, cache, self.annotation_engine, mode)
                )
                committed = updated.annotation_cache == cache
            else:
                updated = self.store.update(
                    entry_id,
                    lambda current: commit_sentence_cache(current, sentence_id, cache, self.annotation_engine, mode),
                )
                current_sentence = updated.find_sentence(sentence_id)
                committed = current_sentence is not None and current_sentence.annotation_cache == cache
            if committed and existing != cache:
                self.persist()
            return AnnotationRead(field=field, value=value, annotated=True, committed=committed)
        finally:
            self.tokens.finish(target, token)

    async def annotations_available(self) -> bool:
        if not self.settings.enable_annotations:
            return False
        try:
            await self.annotation_engine.init()
        except Exception as exc:
            logger.warning("Annotations unavailable: %s", exc)
            return False
        return self.annotation_engine.is_ready()

    # Export
    async def export(self) -> ExportSummary:
        async with self.busy.hold("export"):
            available = await self.annotations_available()
            summary = await self.exporter.export(self.store, self.settings, available)
            self.persist()
            return summary

    # Settings
    def read_settings(self) -> SettingsRead:
        return SettingsRead(
            **self.settings.model_dump(),
            difficulty=self.difficulty,
            needs_attention=self.settings.requires_attention(),
        )

    def update_settings(self, data: SettingsUpdate) -> SettingsRead:
        unknown, uses_notes = validate_template_macros(data.notes_template)
        if uses_notes:
            raise ConfigurationError("The notes template cannot reference {notes}.")
        if unknown:
            raise ConfigurationError(f"Unknown notes template macros: {', '.join(unknown)}")

        settings = AppSettings.model_validate(data.model_dump(exclude={"difficulty"}))
        if settings.kana_mode != self.settings.kana_mode or settings.enable_annotations != self.settings.enable_annotations:
            cancelled = self.tokens.cancel_where(lambda target: True)
            if cancelled:
                logger.debug("Cancelled %d in-flight annotation request(s)", cancelled)
        self.settings = settings
        self.difficulty = data.difficulty
        self.persist()
        return self.read_settings()

