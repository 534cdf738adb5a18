from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

import httpx
from pydantic import BaseModel, Field

from srs_sentences.errors import ConfigurationError, RemoteServiceError, excerpt

logger = logging.getLogger(__name__)

JPDB_BASE_URL = "https://jpdb.io/api/v1"
VOCAB_FIELDS = ["vid", "sid", "spelling", "reading", "meanings"]


class DictionaryLookup(BaseModel):
    reading: str = ""
    meanings: List[str] = Field(default_factory=list)
    vid_sid: Optional[Tuple[int, int]] = None

    def as_definitions_raw(self) -> str:
        return "\n".join(f"{position}. {meaning}" for position, meaning in enumerate(self.meanings, start=1))


def _row_to_dict(fields: Sequence[str], row: Sequence[Any]) -> dict:
    return {field: row[position] for position, field in enumerate(fields) if position < len(row)}


class JpdbDictionaryClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = JPDB_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Missing dictionary API key (Settings → Dictionary).")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def lookup(self, word: str) -> Optional[DictionaryLookup]:
        # The vocabulary lookup endpoint needs vid/sid up front, so the word is parsed instead.
        body = {
            "text": word,
            "token_fields": [],
            "vocabulary_fields": VOCAB_FIELDS,
            "position_length_encoding": "utf16",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/parse",
                    json=body,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            raise RemoteServiceError(f"Dictionary request failed: {exc}") from exc
        if response.status_code >= 400:
            raise RemoteServiceError("Dictionary request failed", status_code=response.status_code, body_excerpt=excerpt(response.text))
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteServiceError("Dictionary returned a malformed body", body_excerpt=excerpt(response.text)) from exc

        if not isinstance(payload, dict):
            raise RemoteServiceError("Dictionary returned a malformed body", body_excerpt=excerpt(response.text))
        vocabulary = payload.get("vocabulary") or []
        if not vocabulary:
            return None
        if not isinstance(vocabulary, list) or not isinstance(vocabulary[0], list):
            raise RemoteServiceError("Dictionary returned a malformed body", body_excerpt=excerpt(response.text))
        row = _row_to_dict(VOCAB_FIELDS, vocabulary[0])
        vid, sid = row.get("vid"), row.get("sid")
        meanings = row.get("meanings")
        return DictionaryLookup(
            reading=str(row.get("reading") or ""),
            meanings=[str(meaning) for meaning in meanings] if isinstance(meanings, list) else [],
            vid_sid=(vid, sid) if isinstance(vid, int) and isinstance(sid, int) else None,
        )
