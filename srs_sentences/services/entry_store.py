from __future__ import annotations

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from srs_sentences.errors import EntryInvariantError, EntryNotFoundError, InvalidTransitionError
from srs_sentences.models.word_entry import EntryStatus, WordEntry, utcnow

logger = logging.getLogger(__name__)

EntryTransform = Callable[[WordEntry], WordEntry]

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"generating", "draft"}),
    "generating": frozenset({"ready", "error"}),
    "ready": frozenset({"generating", "draft"}),
    "error": frozenset({"generating", "draft"}),
}


def create_empty_entry() -> WordEntry:
    return WordEntry()


def transition(entry: WordEntry, status: EntryStatus, **changes) -> WordEntry:
    """Move an entry to ``status``; only the lifecycle edges above are permitted."""
    if status not in ALLOWED_TRANSITIONS.get(entry.status, frozenset()):
        raise InvalidTransitionError(f"Cannot move word entry from {entry.status} to {status}")
    return entry.model_copy(update={**changes, "status": status})


def check_invariants(entry: WordEntry) -> None:
    indices = [definition.index for definition in entry.definitions]
    if len(indices) != len(set(indices)):
        raise EntryInvariantError("Definition numbers must be unique within a word entry")
    batch_ids = [batch.id for batch in entry.generation_batches]
    if len(batch_ids) != len(set(batch_ids)):
        raise EntryInvariantError("Generation batch ids must be unique within a word entry")


class EntryStore:
    def __init__(self, entries: Optional[Iterable[WordEntry]] = None, selected_id: Optional[str] = None) -> None:
        self._entries: List[WordEntry] = []
        self._selected_id = ""
        self.replace_all(entries or [], selected_id)

    @property
    def entries(self) -> List[WordEntry]:
        return list(self._entries)

    @property
    def selected_id(self) -> str:
        return self._selected_id

    @property
    def selected(self) -> WordEntry:
        return self.find(self._selected_id) or self._entries[0]

    def replace_all(self, entries: Iterable[WordEntry], selected_id: Optional[str] = None) -> None:
        entries = list(entries)
        for entry in entries:
            check_invariants(entry)
        if not entries:
            entries = [create_empty_entry()]
        self._entries = entries
        if selected_id and any(entry.id == selected_id for entry in entries):
            self._selected_id = selected_id
        else:
            self._selected_id = entries[0].id

    def find(self, entry_id: str) -> Optional[WordEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def get(self, entry_id: str) -> WordEntry:
        entry = self.find(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Word entry {entry_id} not found")
        return entry

    def select(self, entry_id: str) -> WordEntry:
        entry = self.get(entry_id)
        self._selected_id = entry.id
        return entry

    def create(self) -> WordEntry:
        entry = create_empty_entry()
        self._entries = [entry, *self._entries]
        self._selected_id = entry.id
        return entry

    def remove(self, entry_id: str) -> None:
        self.get(entry_id)
        remaining = [entry for entry in self._entries if entry.id != entry_id]
        if not remaining:
            created = create_empty_entry()
            self._entries = [created]
            self._selected_id = created.id
            return
        self._entries = remaining
        if self._selected_id == entry_id:
            self._selected_id = remaining[0].id

    def update(self, entry_id: str, fn: EntryTransform) -> WordEntry:
        current = self.get(entry_id)
        updated = self._apply(current, fn)
        self._entries = [updated if entry.id == entry_id else entry for entry in self._entries]
        return updated

    def update_all(self, fn: EntryTransform) -> List[WordEntry]:
        self._entries = [self._apply(entry, fn) for entry in self._entries]
        return self.entries

    def _apply(self, current: WordEntry, fn: EntryTransform) -> WordEntry:
        updated = fn(current)
        if updated is current:
            return current
        if updated.id != current.id:
            raise EntryInvariantError("A word entry transform must not change the entry id")
        check_invariants(updated)
        return updated.model_copy(update={"updated_at": utcnow()})
