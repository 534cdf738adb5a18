from fastapi import Request

from srs_sentences.config import get_settings
from srs_sentences.db.base import get_engine
from srs_sentences.services.anki_client import AnkiConnectClient, FlashcardStoreClient
from srs_sentences.services.annotation_service import AnnotationEngine
from srs_sentences.services.dictionary_client import JpdbDictionaryClient
from srs_sentences.services.llm_service import LangChainLLMClient, LLMClient
from srs_sentences.services.persistence_service import PersistenceGateway
from srs_sentences.services.workspace import Workspace


def get_llm_client() -> LLMClient:
    settings = get_settings()
    return LangChainLLMClient(base_url=settings.openai_base_url, timeout=settings.llm_timeout)


def get_flashcard_client() -> FlashcardStoreClient:
    settings = get_settings()
    return AnkiConnectClient(
        url=settings.anki_connect_url,
        version=settings.anki_connect_version,
        timeout=settings.anki_timeout,
    )


def build_workspace() -> Workspace:
    """Wire the process-wide workspace from environment settings."""
    settings = get_settings()
    return Workspace(
        llm_client=get_llm_client(),
        flashcard_client=get_flashcard_client(),
        annotation_engine=AnnotationEngine(),
        gateway=PersistenceGateway(get_engine()),
        dictionary_factory=lambda api_key: JpdbDictionaryClient(api_key=api_key, base_url=settings.jpdb_base_url),
    )


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace
