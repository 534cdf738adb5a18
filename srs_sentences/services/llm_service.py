from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

import httpx
import openai
from langchain_core.exceptions import OutputParserException
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from srs_sentences.errors import LLMValidationError, RemoteServiceError, excerpt
from srs_sentences.llm import build_structured_chain

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMClient(ABC):
    """Structured-JSON completion against a chat model."""

    @abstractmethod
    async def request_structured_json(
        self,
        *,
        credential: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT],
        schema_name: str,
    ) -> SchemaT:
        raise NotImplementedError


class LangChainLLMClient(LLMClient):
    def __init__(
        self,
        base_url: Optional[str] = "https://api.openai.com/v1",
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.http_client = http_client

    def _build_llm(self, credential: str, model: str) -> ChatOpenAI:
        return ChatOpenAI(
            model=model,
            api_key=credential,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
            http_async_client=self.http_client,
        )

    async def request_structured_json(
        self,
        *,
        credential: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT],
        schema_name: str,
    ) -> SchemaT:
        chain, parser = build_structured_chain(self._build_llm(credential, model), schema)
        try:
            raw = await chain.ainvoke(
                {
                    "system_prompt": system_prompt,
                    "user_prompt": user_prompt,
                    "format_instructions": parser.get_format_instructions(),
                }
            )
        except openai.APIStatusError as exc:
            body = getattr(exc.response, "text", "") or exc.message
            raise RemoteServiceError("LLM request failed", status_code=exc.status_code, body_excerpt=excerpt(body)) from exc
        except openai.APIError as exc:
            raise RemoteServiceError(f"LLM request failed: {exc}") from exc
        except OutputParserException as exc:
            raise LLMValidationError("Model returned non-JSON text. Try again.") from exc

        try:
            return schema.model_validate(raw)
        except ValidationError as exc:
            logger.warning("LLM output for %s failed validation: %s", schema_name, exc)
            raise LLMValidationError(f"JSON did not match expected schema ({schema_name}).") from exc
