from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from srs_sentences.api.dependencies import build_workspace
from srs_sentences.api.routes import api_router
from srs_sentences.config import configure_logging, get_settings
from srs_sentences.db.base import init_db
from srs_sentences.errors import (
    ConfigurationError,
    DefinitionNotFoundError,
    EntryInvariantError,
    EntryNotFoundError,
    GenerationInputError,
    InvalidTransitionError,
    LLMValidationError,
    OperationBusyError,
    RemoteServiceError,
    SentenceDeckError,
    SentenceNotFoundError,
)

ERROR_STATUS = [
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
    (GenerationInputError, status.HTTP_400_BAD_REQUEST),
    (RemoteServiceError, status.HTTP_502_BAD_GATEWAY),
    (LLMValidationError, status.HTTP_502_BAD_GATEWAY),
    (EntryNotFoundError, status.HTTP_404_NOT_FOUND),
    (SentenceNotFoundError, status.HTTP_404_NOT_FOUND),
    (DefinitionNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (OperationBusyError, status.HTTP_409_CONFLICT),
    (EntryInvariantError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_for(exc: SentenceDeckError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level)
    init_db()
    workspace = build_workspace()
    workspace.load()
    app.state.workspace = workspace
    yield


app = FastAPI(title="SRS Sentence Service", lifespan=lifespan)


@app.exception_handler(SentenceDeckError)
async def handle_domain_error(_: Request, exc: SentenceDeckError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"detail": str(exc)})


@app.get("/health")
def health_check() -> dict[str, str]:
    """Basic health endpoint."""
    return {"status": "ok"}


app.include_router(api_router)


def run() -> None:
    settings = get_settings()
    uvicorn.run("srs_sentences.main:app", host=settings.host, port=settings.port)
