from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from srs_sentences.db.schemas import AppStateRecord
from srs_sentences.models.difficulty import DIFFICULTY_PROFILES, Difficulty
from srs_sentences.models.settings import AppSettings
from srs_sentences.models.word_entry import WordEntry

logger = logging.getLogger(__name__)

CURRENT_VERSION = 3
DEFAULT_DIFFICULTY = "beginner"
INTERRUPTED_MESSAGE = "Generation was interrupted before it finished."

CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

LEGACY_SETTINGS_KEYS = {
    "jpdbApiKey": "dictionary_api_key",
    "rememberJpdbApiKey": "remember_dictionary_api_key",
    "enableFurigana": "enable_annotations",
    "furiganaKanaMode": "kana_mode",
}
LEGACY_CACHE_KEYS = {"key": "key", "kana": "kana", "rubyHtml": "ruby_html", "anki": "bracket"}


class PersistedState(BaseModel):
    version: int = CURRENT_VERSION
    entries: List[WordEntry] = Field(default_factory=list)
    selected_id: Optional[str] = None
    settings: AppSettings = Field(default_factory=AppSettings)
    difficulty: Difficulty = DEFAULT_DIFFICULTY


def _snake(name: str) -> str:
    return CAMEL_RE.sub("_", name).lower()


def _timestamp(value: Any) -> Any:
    """Legacy payloads store epoch milliseconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
    return value


def _difficulty(value: Any, fallback: str = DEFAULT_DIFFICULTY) -> str:
    return value if value in DIFFICULTY_PROFILES else fallback


def _cache_v3(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict) or not raw.get("key"):
        return None
    return {LEGACY_CACHE_KEYS[key]: value for key, value in raw.items() if key in LEGACY_CACHE_KEYS}


def _compact(item: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in item.items() if value is not None}


def _definition_v3(raw: Dict[str, Any]) -> Dict[str, Any]:
    return _compact({
        "index": raw.get("index"),
        "text": raw.get("text", ""),
        "count": raw.get("count", 1),
        "validity": raw.get("validity"),
        "study_priority": raw.get("studyPriority"),
        "comment": raw.get("comment"),
        "colocations": raw.get("colocations"),
    })


def _generation_v3(raw: Dict[str, Any], difficulty: str) -> Dict[str, Any]:
    item = {
        "def_index": raw.get("defIndex"),
        "def_sub_index": raw.get("defSubIndex", 0),
        "text": raw.get("jp", ""),
        "gloss": raw.get("en", ""),
        "notes": raw.get("notes", ""),
        "created_at": _timestamp(raw.get("createdAt")),
        "difficulty": _difficulty(raw.get("difficulty"), difficulty),
    }
    if raw.get("id"):
        item["id"] = raw["id"]
    return _compact(item)


def _batch_v3(raw: Dict[str, Any], difficulty: str) -> Dict[str, Any]:
    return _compact({
        "id": raw.get("id"),
        "created_at": _timestamp(raw.get("createdAt")),
        "difficulty": _difficulty(raw.get("difficulty"), difficulty),
        "definitions": [
            {"index": item.get("index"), "text": item.get("text", ""), "count": item.get("count", 0)}
            for item in raw.get("definitions") or []
        ],
    })


def _sentence_v3(raw: Dict[str, Any]) -> Dict[str, Any]:
    item = {
        "text": raw.get("jp", ""),
        "gloss": raw.get("en", ""),
        "notes": raw.get("notes", ""),
        "source": raw.get("source", "generated"),
        "created_at": _timestamp(raw.get("createdAt")),
        "export_enabled": raw.get("exportEnabled", True),
        "export_status": raw.get("exportStatus", "new"),
        "generation_id": raw.get("generationId"),
        "batch_id": raw.get("batchId"),
        "def_sub_index": raw.get("defSubIndex"),
        "definition_snapshot": raw.get("definitionSnapshot"),
        "difficulty": raw.get("difficulty"),
        "annotation_cache": _cache_v3(raw.get("furiganaCache")),
    }
    if raw.get("id"):
        item["id"] = raw["id"]
    return _compact(item)


def _entry_v3(raw: Dict[str, Any], difficulty: str) -> Dict[str, Any]:
    entry_difficulty = _difficulty(raw.get("difficulty"), difficulty)
    item = {
        "word": raw.get("word", ""),
        "reading": raw.get("reading") or "",
        "definitions_raw": raw.get("definitionsRaw", ""),
        "definitions": [_definition_v3(d) for d in raw.get("definitions") or []],
        "generations": [_generation_v3(g, entry_difficulty) for g in raw.get("generations") or []],
        "generation_batches": [_batch_v3(b, entry_difficulty) for b in raw.get("generationBatches") or []],
        "sentences": [_sentence_v3(s) for s in raw.get("sentences") or []],
        "annotation_cache": _cache_v3(raw.get("furiganaCache")),
        "status": raw.get("status", "draft"),
        "last_error": raw.get("lastError"),
        "created_at": _timestamp(raw.get("createdAt")),
        "updated_at": _timestamp(raw.get("updatedAt")),
    }
    if raw.get("id"):
        item["id"] = raw["id"]
    return _compact(item)


def _settings_v3(raw: Dict[str, Any]) -> Dict[str, Any]:
    settings: Dict[str, Any] = {}
    for key, value in (raw or {}).items():
        name = LEGACY_SETTINGS_KEYS.get(key, _snake(key))
        if name in AppSettings.model_fields:
            settings[name] = value
    return settings


def _migrate_v1_to_v2(payload: Dict[str, Any]) -> Dict[str, Any]:
    settings = dict(payload.get("settings") or {})
    legacy_difficulty = settings.pop("defaultDifficulty", None)
    entries = payload.get("wordEntries")
    if not isinstance(entries, list):
        entries = payload.get("jobs") or []
    return {
        "version": 2,
        "wordEntries": entries,
        "selectedWordEntryId": payload.get("selectedWordEntryId") or payload.get("selectedJobId"),
        "settings": settings,
        "sentenceGenDifficulty": payload.get("sentenceGenDifficulty") or legacy_difficulty or DEFAULT_DIFFICULTY,
    }


def _migrate_v2_to_v3(payload: Dict[str, Any]) -> Dict[str, Any]:
    difficulty = _difficulty(payload.get("sentenceGenDifficulty"))
    return {
        "version": 3,
        "entries": [_entry_v3(entry, difficulty) for entry in payload.get("wordEntries") or []],
        "selected_id": payload.get("selectedWordEntryId"),
        "settings": _settings_v3(payload.get("settings") or {}),
        "difficulty": difficulty,
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: _migrate_v1_to_v2,
    2: _migrate_v2_to_v3,
}


def detect_version(payload: Dict[str, Any]) -> Optional[int]:
    version = payload.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        return None
    # Early builds wrote the ``jobs`` shape under version 2.
    if version == 2 and "jobs" in payload and "wordEntries" not in payload:
        return 1
    return version


def migrate(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Run forward migrations until the payload reaches the current version."""
    version = detect_version(payload)
    if version is None or version > CURRENT_VERSION or version < 1:
        logger.warning("Ignoring persisted state with unsupported version %r", payload.get("version"))
        return None
    while version < CURRENT_VERSION:
        payload = MIGRATIONS[version](payload)
        version = payload["version"]
    return payload


def _recover_interrupted(entry: WordEntry) -> WordEntry:
    if entry.status != "generating":
        return entry
    return entry.model_copy(update={"status": "error", "last_error": INTERRUPTED_MESSAGE})


def parse_state(payload: Any) -> Optional[PersistedState]:
    if not isinstance(payload, dict):
        logger.warning("Ignoring persisted state that is not an object")
        return None
    try:
        migrated = migrate(payload)
    except (AttributeError, TypeError, ValueError, KeyError) as exc:
        logger.warning("Ignoring persisted state with a malformed legacy shape: %s", exc)
        return None
    if migrated is None:
        return None
    try:
        state = PersistedState.model_validate(migrated)
    except ValidationError as exc:
        logger.warning("Ignoring invalid persisted state: %s", exc)
        return None
    return state.model_copy(update={"entries": [_recover_interrupted(entry) for entry in state.entries]})


def dump_state(state: PersistedState) -> Dict[str, Any]:
    stored = state.model_copy(update={"version": CURRENT_VERSION, "settings": state.settings.for_storage()})
    return stored.model_dump(mode="json")


class PersistenceGateway:
    """Loads and saves the whole application state as a single JSON row."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def load(self) -> Optional[PersistedState]:
        with Session(self.engine) as session:
            record = session.exec(select(AppStateRecord).order_by(AppStateRecord.id)).first()
            if record is None:
                return None
            payload = record.payload
        return parse_state(payload)

    def save(self, state: PersistedState) -> None:
        payload = dump_state(state)
        with Session(self.engine) as session:
            record = session.exec(select(AppStateRecord).order_by(AppStateRecord.id)).first()
            if record is None:
                record = AppStateRecord()
            record.version = CURRENT_VERSION
            record.payload = payload
            record.updated_at = datetime.now(timezone.utc)
            session.add(record)
            session.commit()
        logger.debug("Persisted %d word entries", len(state.entries))

