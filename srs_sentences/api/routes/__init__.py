from fastapi import APIRouter

from . import anki, annotations, entries, sentences, settings

api_router = APIRouter()
api_router.include_router(entries.router)
api_router.include_router(sentences.router)
api_router.include_router(annotations.router)
api_router.include_router(settings.router)
api_router.include_router(anki.router)

__all__ = ["api_router"]
