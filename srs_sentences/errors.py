from __future__ import annotations

from typing import Optional


class SentenceDeckError(Exception):
    """Base class for errors surfaced to the user."""


class ConfigurationError(SentenceDeckError):
    """A required setting (credential, model, deck, note type) is missing."""


class NothingToExportError(ConfigurationError):
    pass


class GenerationInputError(SentenceDeckError):
    """The word entry cannot be used for generation as it stands."""


class RemoteServiceError(SentenceDeckError):
    def __init__(self, message: str, status_code: Optional[int] = None, body_excerpt: str = "") -> None:
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        detail = message
        if status_code is not None:
            detail = f"{message} ({status_code})"
        if body_excerpt:
            detail = f"{detail}: {body_excerpt}"
        super().__init__(detail)


class LLMValidationError(SentenceDeckError):
    """The model answered, but not in the requested shape."""


class EntryNotFoundError(SentenceDeckError):
    pass


class SentenceNotFoundError(SentenceDeckError):
    pass


class DefinitionNotFoundError(SentenceDeckError):
    pass


class InvalidTransitionError(SentenceDeckError):
    pass


class OperationBusyError(SentenceDeckError):
    pass


class EntryInvariantError(SentenceDeckError):
    pass


def excerpt(text: str, limit: int = 300) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "…"
