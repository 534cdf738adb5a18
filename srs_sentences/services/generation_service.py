from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from srs_sentences.errors import ConfigurationError, GenerationInputError, LLMValidationError
from srs_sentences.llm import GeneratedSentencesSchema, MeaningAnalysisItemSchema, MeaningAnalysisSchema
from srs_sentences.llm.prompts import (
    ANALYZE_MEANINGS_HUMAN_PROMPT,
    ANALYZE_MEANINGS_SYSTEM_PROMPT,
    GENERATE_SENTENCES_HUMAN_PROMPT,
    GENERATE_SENTENCES_SYSTEM_PROMPT,
)
from srs_sentences.models.difficulty import DIFFICULTY_PROFILES
from srs_sentences.models.settings import AppSettings
from srs_sentences.models.word_entry import (
    BatchDefinition,
    DefinitionSnapshot,
    GenerationBatch,
    SentenceGeneration,
    SentenceItem,
    WordEntry,
    utcnow,
)
from srs_sentences.services.definition_parser import apply_analysis, total_requested
from srs_sentences.services.entry_store import EntryStore, transition
from srs_sentences.services.llm_service import LLMClient
from srs_sentences.services.templates import apply_template

logger = logging.getLogger(__name__)

GENERATE_SCHEMA_NAME = "jp_srs_sentences"
ANALYZE_SCHEMA_NAME = "jp_srs_definition_analysis"


def next_batch_id(batches: Iterable[GenerationBatch]) -> int:
    return max((batch.id for batch in batches), default=0) + 1


def check_entry_ready(entry: WordEntry) -> None:
    if not entry.word.strip():
        raise GenerationInputError("Word entry is missing a target word.")
    if not entry.definitions:
        raise GenerationInputError("Word entry has no parsed definitions.")
    if total_requested(entry.definitions) <= 0:
        raise GenerationInputError("All definition counts are zero.")


def check_credentials(settings: AppSettings) -> None:
    if not settings.api_key:
        raise ConfigurationError("Missing API key (Settings → API Key).")
    if not settings.model:
        raise ConfigurationError("Missing model (Settings → Model).")


def render_notes(settings: AppSettings, entry: WordEntry, def_index: int, meaning: str, difficulty: str) -> str:
    return apply_template(
        settings.notes_template,
        {
            "word": entry.word,
            "meaning": meaning,
            "defIndex": str(def_index),
            "reading": entry.reading or "",
            "difficulty": difficulty,
        },
    )


def build_generation_prompt(entry: WordEntry, difficulty: str) -> str:
    profile = DIFFICULTY_PROFILES[difficulty]
    definitions_block = "\n".join(
        f"{definition.index}. {definition.text} (sentences: {definition.count})"
        for definition in entry.definitions
        if definition.count > 0
    )
    return GENERATE_SENTENCES_HUMAN_PROMPT.format(
        word=entry.word,
        reading=entry.reading or "(unknown)",
        definitions_block=definitions_block,
        guidelines=profile.prompt_guidelines,
        max_chars=profile.max_chars,
    )


def assign_sub_indices(
    items: Sequence,
    entry: WordEntry,
    settings: AppSettings,
    difficulty: str,
    created_at: Optional[datetime] = None,
) -> List[SentenceGeneration]:
    """Number items per definition (0, 1, ...) in the order the model returned them."""
    created_at = created_at or utcnow()
    meanings = {definition.index: definition.text for definition in entry.definitions}
    next_sub_index: Dict[int, int] = {}
    results: List[SentenceGeneration] = []
    for item in items:
        sub_index = next_sub_index.get(item.def_index, 0)
        next_sub_index[item.def_index] = sub_index + 1
        meaning = meanings.get(item.def_index, "")
        results.append(
            SentenceGeneration(
                def_index=item.def_index,
                def_sub_index=sub_index,
                text=item.text,
                gloss=item.gloss,
                notes=render_notes(settings, entry, item.def_index, meaning, difficulty),
                created_at=created_at,
                difficulty=difficulty,
            )
        )
    return results


async def generate_sentences(
    llm_client: LLMClient,
    entry: WordEntry,
    settings: AppSettings,
    difficulty: str,
) -> List[SentenceGeneration]:
    check_credentials(settings)
    check_entry_ready(entry)

    payload = await llm_client.request_structured_json(
        credential=settings.api_key,
        model=settings.model,
        system_prompt=GENERATE_SENTENCES_SYSTEM_PROMPT,
        user_prompt=build_generation_prompt(entry, difficulty),
        schema=GeneratedSentencesSchema,
        schema_name=GENERATE_SCHEMA_NAME,
    )
    if payload is None or payload.items is None:
        raise LLMValidationError("JSON did not match expected schema (items array missing).")
    return assign_sub_indices(payload.items, entry, settings, difficulty)


def build_mock_generations(entry: WordEntry, settings: AppSettings, difficulty: str) -> List[SentenceGeneration]:
    check_entry_ready(entry)
    now = utcnow()
    results: List[SentenceGeneration] = []
    for definition in entry.definitions:
        for sub_index in range(definition.count):
            results.append(
                SentenceGeneration(
                    id=f"mock-{definition.index}-{sub_index}-{int(now.timestamp() * 1000)}",
                    def_index=definition.index,
                    def_sub_index=sub_index,
                    text=f"{entry.word}の例文（仮）" if entry.word else "単語の例文（仮）",
                    gloss=f"Sample sentence for “{definition.text}”."
                    if definition.text
                    else "Sample sentence for the provided definition.",
                    notes=render_notes(settings, entry, definition.index, definition.text, difficulty),
                    created_at=now,
                    difficulty=difficulty,
                )
            )
    return results


def build_batch(entry: WordEntry, batch_id: int, difficulty: str, created_at: datetime) -> GenerationBatch:
    return GenerationBatch(
        id=batch_id,
        created_at=created_at,
        difficulty=difficulty,
        definitions=[
            BatchDefinition(index=definition.index, text=definition.text, count=definition.count)
            for definition in entry.definitions
        ],
    )


def build_sentence_item(entry: WordEntry, generation: SentenceGeneration, batch_id: int) -> SentenceItem:
    snapshot = None
    for definition in entry.definitions:
        if definition.index == generation.def_index:
            snapshot = DefinitionSnapshot(index=definition.index, text=definition.text)
            break
    return SentenceItem(
        text=generation.text,
        gloss=generation.gloss,
        notes=generation.notes,
        source="generated",
        created_at=generation.created_at,
        export_enabled=True,
        export_status="new",
        generation_id=generation.id,
        batch_id=batch_id,
        def_sub_index=generation.def_sub_index,
        definition_snapshot=snapshot,
        difficulty=generation.difficulty,
    )


def apply_generation_results(entry: WordEntry, results: List[SentenceGeneration], difficulty: str) -> WordEntry:
    batch_id = next_batch_id(entry.generation_batches)
    created_at = results[0].created_at if results else utcnow()
    batch = build_batch(entry, batch_id, difficulty, created_at)
    items = [build_sentence_item(entry, generation, batch_id) for generation in results]
    return transition(
        entry,
        "ready",
        generations=results,
        generation_batches=[*entry.generation_batches, batch],
        sentences=[*entry.sentences, *items],
        last_error=None,
    )


def clear_generated(entry: WordEntry) -> WordEntry:
    return transition(entry, "draft", generations=[], generation_batches=[], sentences=[], last_error=None)


async def analyze_meanings(
    llm_client: LLMClient,
    entry: WordEntry,
    settings: AppSettings,
) -> List[MeaningAnalysisItemSchema]:
    check_credentials(settings)
    if not entry.word.strip():
        raise GenerationInputError("Word entry is missing a target word.")
    if not entry.definitions:
        raise GenerationInputError("Word entry has no parsed definitions.")

    meanings_block = "\n".join(f"{definition.index}. {definition.text}" for definition in entry.definitions)
    payload = await llm_client.request_structured_json(
        credential=settings.api_key,
        model=settings.model,
        system_prompt=ANALYZE_MEANINGS_SYSTEM_PROMPT,
        user_prompt=ANALYZE_MEANINGS_HUMAN_PROMPT.format(
            word=entry.word,
            reading=entry.reading or "(unknown)",
            meanings_block=meanings_block,
        ),
        schema=MeaningAnalysisSchema,
        schema_name=ANALYZE_SCHEMA_NAME,
    )
    return list(payload.items)


@dataclass
class GenerationOutcome:
    entry: WordEntry
    used_mock: bool
    notice: Optional[str] = None


class SentenceGenerationEngine:
    def __init__(self, llm_client: LLMClient) -> None:
        self.llm_client = llm_client

    async def run(self, store: EntryStore, entry_id: str, settings: AppSettings, difficulty: str) -> GenerationOutcome:
        if difficulty not in DIFFICULTY_PROFILES:
            raise GenerationInputError(f"Unknown difficulty: {difficulty}")
        entry = store.update(entry_id, lambda current: transition(current, "generating", last_error=None))
        used_mock = not settings.api_key
        try:
            if used_mock:
                results = build_mock_generations(entry, settings, difficulty)
            else:
                results = await generate_sentences(self.llm_client, entry, settings, difficulty)
        except Exception as exc:
            logger.warning("Sentence generation failed for entry %s: %s", entry_id, exc)
            store.update(entry_id, lambda current: transition(current, "error", last_error=str(exc)))
            raise

        updated = store.update(entry_id, lambda current: apply_generation_results(current, results, difficulty))
        logger.info(
            "Generated %d sentence(s) for entry %s in batch %d",
            len(results),
            entry_id,
            updated.generation_batches[-1].id,
        )
        notice = "No API key set, using mock results." if used_mock else None
        return GenerationOutcome(entry=updated, used_mock=used_mock, notice=notice)

    async def analyze(self, store: EntryStore, entry_id: str, settings: AppSettings) -> WordEntry:
        entry = store.get(entry_id)
        items = await analyze_meanings(self.llm_client, entry, settings)
        return store.update(
            entry_id,
            lambda current: current.model_copy(update={"definitions": apply_analysis(current.definitions, items)}),
        )
