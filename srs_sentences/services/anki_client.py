from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from srs_sentences.errors import RemoteServiceError, excerpt
from srs_sentences.models.export import ConnectionStatus, FlashcardNote

logger = logging.getLogger(__name__)

ANKI_CONNECT_URL = "http://127.0.0.1:8765"
ANKI_CONNECT_VERSION = 5


class FlashcardStoreClient(ABC):
    """Decks, note types and notes of the external flashcard store."""

    @abstractmethod
    async def version(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def list_decks(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    async def list_note_types(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    async def list_fields(self, note_type: str) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    async def add_notes(self, notes: List[FlashcardNote]) -> List[Optional[int]]:
        raise NotImplementedError

    async def check_connection(self) -> ConnectionStatus:
        try:
            version = await self.version()
        except RemoteServiceError as exc:
            logger.info("Flashcard store offline: %s", exc)
            return ConnectionStatus(kind="offline")
        if version < ANKI_CONNECT_VERSION:
            return ConnectionStatus(kind="outdated", version=version)
        return ConnectionStatus(kind="online", version=version)


class AnkiConnectClient(FlashcardStoreClient):
    def __init__(
        self,
        url: str = ANKI_CONNECT_URL,
        version: int = ANKI_CONNECT_VERSION,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.api_version = version
        self.timeout = timeout
        self._transport = transport

    async def invoke(self, action: str, params: Optional[Dict[str, Any]] = None) -> Any:
        payload: Dict[str, Any] = {"action": action, "version": self.api_version}
        if params is not None:
            payload["params"] = params
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as exc:
            raise RemoteServiceError(
                f"Could not connect to AnkiConnect at {self.url}. Make sure Anki is running with AnkiConnect installed"
            ) from exc

        if response.status_code >= 400:
            raise RemoteServiceError("AnkiConnect HTTP error", status_code=response.status_code, body_excerpt=excerpt(response.text))
        try:
            result = response.json()
        except ValueError as exc:
            raise RemoteServiceError("AnkiConnect returned a malformed body", body_excerpt=excerpt(response.text)) from exc
        if not isinstance(result, dict):
            raise RemoteServiceError("AnkiConnect returned a malformed body", body_excerpt=excerpt(response.text))
        if result.get("error"):
            raise RemoteServiceError(f"AnkiConnect error: {result['error']}")
        return result.get("result")

    async def version(self) -> int:
        return int(await self.invoke("version"))

    async def list_decks(self) -> List[str]:
        return list(await self.invoke("deckNames") or [])

    async def list_note_types(self) -> List[str]:
        return list(await self.invoke("modelNames") or [])

    async def list_fields(self, note_type: str) -> List[str]:
        return list(await self.invoke("modelFieldNames", {"modelName": note_type}) or [])

    async def add_notes(self, notes: List[FlashcardNote]) -> List[Optional[int]]:
        payload = [
            {
                "deckName": note.deck_name,
                "modelName": note.model_name,
                "fields": note.fields,
                "tags": note.tags,
            }
            for note in notes
        ]
        result = await self.invoke("addNotes", {"notes": payload})
        if not isinstance(result, list):
            raise RemoteServiceError("AnkiConnect addNotes returned an unexpected result", body_excerpt=excerpt(str(result)))
        return result
