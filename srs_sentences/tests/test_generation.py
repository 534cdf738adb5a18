import asyncio

import pytest

from srs_sentences.errors import ConfigurationError, GenerationInputError, LLMValidationError, RemoteServiceError
from srs_sentences.models.settings import AppSettings
from srs_sentences.models.word_entry import DefinitionSpec, WordEntry
from srs_sentences.services.entry_store import EntryStore
from srs_sentences.services.generation_service import (
    SentenceGenerationEngine,
    assign_sub_indices,
    build_generation_prompt,
    build_mock_generations,
    clear_generated,
    generate_sentences,
    next_batch_id,
)

SETTINGS = AppSettings(api_key="sk-test", model="gpt-4o-mini", notes_template="{word} #{defIndex}: {meaning} {unknown}")


def make_entry(**changes) -> WordEntry:
    entry = WordEntry(
        word="食べる",
        reading="たべる",
        definitions_raw="1. to eat\n2. to live on\n3. to bear",
        definitions=[
            DefinitionSpec(index=1, text="to eat", count=2),
            DefinitionSpec(index=2, text="to live on", count=0),
            DefinitionSpec(index=3, text="to bear", count=1),
        ],
    )
    return entry.model_copy(update=changes)


def llm_items(*pairs):
    return {"items": [{"defIndex": index, "jp": text, "en": f"gloss {text}"} for index, text in pairs]}


def test_next_batch_id_starts_at_one():
    assert next_batch_id([]) == 1


def test_prompt_lists_only_requested_definitions():
    prompt = build_generation_prompt(make_entry(), "beginner")

    assert "1. to eat (sentences: 2)" in prompt
    assert "3. to bear (sentences: 1)" in prompt
    assert "to live on" not in prompt


def test_sub_indices_follow_returned_order():
    entry = make_entry()
    items = [
        type("Item", (), {"def_index": 3, "text": "a", "gloss": "A"}),
        type("Item", (), {"def_index": 1, "text": "b", "gloss": "B"}),
        type("Item", (), {"def_index": 1, "text": "c", "gloss": "C"}),
    ]

    generations = assign_sub_indices(items, entry, SETTINGS, "beginner")

    assert [(g.def_index, g.def_sub_index) for g in generations] == [(3, 0), (1, 0), (1, 1)]
    assert generations[1].notes == "食べる #1: to eat {unknown}"


@pytest.mark.parametrize(
    "settings, changes, error",
    [
        (AppSettings(api_key="", model="m"), {}, ConfigurationError),
        (AppSettings(api_key="k", model=""), {}, ConfigurationError),
        (SETTINGS, {"word": "  "}, GenerationInputError),
        (SETTINGS, {"definitions": []}, GenerationInputError),
        (SETTINGS, {"definitions": [DefinitionSpec(index=1, text="a", count=0)]}, GenerationInputError),
    ],
)
def test_generation_preconditions(llm_client, settings, changes, error):
    with pytest.raises(error):
        asyncio.run(generate_sentences(llm_client, make_entry(**changes), settings, "beginner"))
    assert llm_client.calls == []


def test_run_appends_batches_and_sentences(llm_client):
    store = EntryStore([make_entry()])
    entry_id = store.selected_id
    engine = SentenceGenerationEngine(llm_client)
    llm_client.responses = [llm_items((1, "ご飯を食べる。"), (3, "責任を食べる。"), (1, "パンを食べた。")), llm_items((1, "また食べる。"))]

    first = asyncio.run(engine.run(store, entry_id, SETTINGS, "beginner")).entry
    second = asyncio.run(engine.run(store, entry_id, SETTINGS, "intermediate")).entry

    assert first.status == "ready"
    assert [batch.id for batch in second.generation_batches] == [1, 2]
    assert second.generation_batches[1].difficulty == "intermediate"
    assert len(second.sentences) == 4
    assert len(second.generations) == 1
    sentence = second.sentences[0]
    assert sentence.export_enabled is True
    assert sentence.export_status == "new"
    assert sentence.batch_id == 1
    assert sentence.definition_snapshot.text == "to eat"
    assert sentence.generation_id == first.generations[0].id
    assert second.sentences[3].batch_id == 2
    assert second.sentences[3].def_sub_index == 0


def test_snapshot_survives_definition_edits(llm_client):
    store = EntryStore([make_entry()])
    entry_id = store.selected_id
    llm_client.responses = [llm_items((1, "ご飯を食べる。"))]
    asyncio.run(SentenceGenerationEngine(llm_client).run(store, entry_id, SETTINGS, "beginner"))

    store.update(entry_id, lambda entry: entry.model_copy(update={"definitions": [DefinitionSpec(index=1, text="changed")]}))

    assert store.get(entry_id).sentences[0].definition_snapshot.text == "to eat"


def test_failure_marks_error_and_keeps_prior_sentences(llm_client):
    store = EntryStore([make_entry()])
    entry_id = store.selected_id
    engine = SentenceGenerationEngine(llm_client)
    llm_client.responses = [
        llm_items((1, "ご飯を食べる。")),
        RemoteServiceError("LLM request failed", status_code=500, body_excerpt="boom"),
    ]
    asyncio.run(engine.run(store, entry_id, SETTINGS, "beginner"))

    with pytest.raises(RemoteServiceError):
        asyncio.run(engine.run(store, entry_id, SETTINGS, "beginner"))

    entry = store.get(entry_id)
    assert entry.status == "error"
    assert entry.last_error == "LLM request failed (500): boom"
    assert len(entry.sentences) == 1
    assert len(entry.generation_batches) == 1


def test_schema_mismatch_is_a_validation_error(llm_client):
    store = EntryStore([make_entry()])
    llm_client.responses = [LLMValidationError("JSON did not match expected schema (jp_srs_sentences).")]

    with pytest.raises(LLMValidationError):
        asyncio.run(SentenceGenerationEngine(llm_client).run(store, store.selected_id, SETTINGS, "beginner"))

    assert store.selected.status == "error"


def test_mock_generator_without_credential(llm_client):
    store = EntryStore([make_entry()])
    settings = AppSettings(api_key="")

    outcome = asyncio.run(SentenceGenerationEngine(llm_client).run(store, store.selected_id, settings, "beginner"))

    assert outcome.used_mock is True
    assert llm_client.calls == []
    assert [(s.definition_snapshot.index, s.def_sub_index) for s in outcome.entry.sentences] == [(1, 0), (1, 1), (3, 0)]


def test_mock_generator_respects_zero_total():
    entry = make_entry(definitions=[DefinitionSpec(index=1, text="a", count=0)])

    with pytest.raises(GenerationInputError):
        build_mock_generations(entry, AppSettings(), "beginner")


def test_clear_returns_entry_to_draft(llm_client):
    store = EntryStore([make_entry()])
    llm_client.responses = [llm_items((1, "ご飯を食べる。"))]
    asyncio.run(SentenceGenerationEngine(llm_client).run(store, store.selected_id, SETTINGS, "beginner"))

    cleared = store.update(store.selected_id, clear_generated)

    assert cleared.status == "draft"
    assert cleared.sentences == []
    assert cleared.generation_batches == []
    assert len(cleared.definitions) == 3


def test_analyze_merges_without_touching_counts(llm_client):
    store = EntryStore([make_entry()])
    llm_client.responses = [
        {"items": [{"meaningIndex": 3, "validity": "dubious", "studyPriority": "recognize", "comment": "idiomatic"}]}
    ]

    entry = asyncio.run(SentenceGenerationEngine(llm_client).analyze(store, store.selected_id, SETTINGS))

    assert entry.definitions[2].validity == "dubious"
    assert entry.definitions[2].count == 1
    assert entry.definitions[0].validity is None
    assert entry.status == "draft"
