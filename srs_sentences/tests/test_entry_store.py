import pytest

from srs_sentences.errors import EntryInvariantError, EntryNotFoundError, InvalidTransitionError
from srs_sentences.models.word_entry import DefinitionSpec, WordEntry
from srs_sentences.services.entry_store import EntryStore, transition


def test_store_always_has_an_entry():
    store = EntryStore()

    assert len(store.entries) == 1
    assert store.selected_id == store.entries[0].id


def test_create_prepends_and_selects():
    store = EntryStore()
    first = store.selected

    created = store.create()

    assert store.entries[0].id == created.id
    assert store.entries[1].id == first.id
    assert store.selected_id == created.id


def test_remove_last_entry_synthesizes_a_fresh_one():
    store = EntryStore()
    only = store.selected

    store.remove(only.id)

    assert len(store.entries) == 1
    assert store.entries[0].id != only.id
    assert store.selected_id == store.entries[0].id


def test_remove_selected_reselects_first():
    store = EntryStore()
    older = store.selected
    newer = store.create()
    store.create()
    store.select(newer.id)

    store.remove(newer.id)

    assert store.selected_id == store.entries[0].id
    assert older.id in [entry.id for entry in store.entries]


def test_remove_unknown_entry_raises():
    with pytest.raises(EntryNotFoundError):
        EntryStore().remove("missing")


def test_update_stamps_timestamp_and_does_not_mutate():
    store = EntryStore()
    before = store.selected

    after = store.update(before.id, lambda entry: entry.model_copy(update={"word": "食べる"}))

    assert before.word == ""
    assert after.word == "食べる"
    assert after.updated_at >= before.updated_at
    assert store.get(before.id) is after


def test_identity_update_leaves_entry_untouched():
    store = EntryStore()
    before = store.selected

    after = store.update(before.id, lambda entry: entry)

    assert after is before
    assert after.updated_at == before.updated_at


def test_update_rejects_duplicate_definition_numbers():
    store = EntryStore()
    entry_id = store.selected_id
    duplicated = [DefinitionSpec(index=1, text="a"), DefinitionSpec(index=1, text="b")]

    with pytest.raises(EntryInvariantError):
        store.update(entry_id, lambda entry: entry.model_copy(update={"definitions": duplicated}))

    assert store.get(entry_id).definitions == []


def test_update_all_only_stamps_changed_entries():
    store = EntryStore()
    untouched = store.selected
    changed = store.create()

    store.update_all(lambda entry: entry.model_copy(update={"word": "猫"}) if entry.id == changed.id else entry)

    assert store.get(untouched.id) is untouched
    assert store.get(changed.id).word == "猫"


def test_transition_enforces_lifecycle():
    entry = WordEntry()

    generating = transition(entry, "generating")
    ready = transition(generating, "ready")

    assert transition(ready, "draft").status == "draft"
    with pytest.raises(InvalidTransitionError):
        transition(entry, "ready")
    with pytest.raises(InvalidTransitionError):
        transition(generating, "draft")
