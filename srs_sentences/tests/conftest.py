from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from srs_sentences.db.schemas import AppStateRecord  # noqa: F401
from srs_sentences.errors import RemoteServiceError
from srs_sentences.models.export import FlashcardNote
from srs_sentences.services.anki_client import FlashcardStoreClient
from srs_sentences.services.annotation_service import AnnotationEngine
from srs_sentences.services.llm_service import LLMClient
from srs_sentences.services.persistence_service import PersistenceGateway
from srs_sentences.services.workspace import Workspace

TOKENS = {
    "食べる": [{"orig": "食べる", "hira": "たべる", "kana": "タベル"}],
    "猫": [{"orig": "猫", "hira": "ねこ", "kana": "ネコ"}],
    "猫が好きです": [
        {"orig": "猫", "hira": "ねこ", "kana": "ネコ"},
        {"orig": "が", "hira": "が", "kana": "ガ"},
        {"orig": "好き", "hira": "すき", "kana": "スキ"},
        {"orig": "です", "hira": "です", "kana": "デス"},
    ],
}


class FakeKakasi:
    def __init__(self) -> None:
        self.calls: List[str] = []

    def convert(self, text: str) -> List[Dict[str, str]]:
        self.calls.append(text)
        return TOKENS.get(text, [{"orig": text, "hira": text, "kana": text}])


class BrokenKakasi:
    def convert(self, text: str) -> List[Dict[str, str]]:
        raise RuntimeError("dictionary files missing")


class FakeLLMClient(LLMClient):
    def __init__(self) -> None:
        self.responses: List[Any] = []
        self.calls: List[Dict[str, Any]] = []

    async def request_structured_json(self, *, credential, model, system_prompt, user_prompt, schema, schema_name):
        self.calls.append({"credential": credential, "model": model, "user_prompt": user_prompt, "schema_name": schema_name})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return schema.model_validate(response)


class FakeFlashcardClient(FlashcardStoreClient):
    def __init__(self) -> None:
        self.fields: List[str] = ["Front", "Back"]
        self.results: Optional[List[Optional[int]]] = None
        self.added: List[List[FlashcardNote]] = []
        self.field_calls: List[str] = []
        self.online = True

    async def version(self) -> int:
        if not self.online:
            raise RemoteServiceError("Could not connect to AnkiConnect")
        return 6

    async def list_decks(self) -> List[str]:
        return ["Default", "Japanese::Sentences"]

    async def list_note_types(self) -> List[str]:
        return ["Basic", "Japanese Sentence"]

    async def list_fields(self, note_type: str) -> List[str]:
        self.field_calls.append(note_type)
        return list(self.fields)

    async def add_notes(self, notes: List[FlashcardNote]) -> List[Optional[int]]:
        self.added.append(list(notes))
        if self.results is not None:
            return list(self.results)
        return [1000 + position for position in range(len(notes))]


def create_in_memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def kakasi() -> FakeKakasi:
    return FakeKakasi()


@pytest.fixture
def annotation_engine(kakasi) -> AnnotationEngine:
    return AnnotationEngine(factory=lambda: kakasi)


@pytest.fixture
def broken_engine() -> AnnotationEngine:
    return AnnotationEngine(factory=BrokenKakasi)


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def flashcard_client() -> FakeFlashcardClient:
    return FakeFlashcardClient()


@pytest.fixture
def engine():
    engine = create_in_memory_engine()
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def gateway(engine) -> PersistenceGateway:
    return PersistenceGateway(engine)


@pytest.fixture
def workspace(llm_client, flashcard_client, annotation_engine, gateway) -> Workspace:
    return Workspace(
        llm_client=llm_client,
        flashcard_client=flashcard_client,
        annotation_engine=annotation_engine,
        gateway=gateway,
    )
