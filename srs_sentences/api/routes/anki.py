from typing import List

from fastapi import APIRouter, Depends

from srs_sentences.api.dependencies import get_workspace
from srs_sentences.models.export import ConnectionStatus, ExportSummary
from srs_sentences.services.workspace import Workspace

router = APIRouter(prefix="/anki", tags=["anki"])


@router.get("/status", response_model=ConnectionStatus)
async def connection_status(workspace: Workspace = Depends(get_workspace)) -> ConnectionStatus:
    return await workspace.flashcard_client.check_connection()


@router.get("/decks", response_model=List[str])
async def list_decks(workspace: Workspace = Depends(get_workspace)) -> List[str]:
    return await workspace.flashcard_client.list_decks()


@router.get("/note-types", response_model=List[str])
async def list_note_types(workspace: Workspace = Depends(get_workspace)) -> List[str]:
    return await workspace.flashcard_client.list_note_types()


@router.get("/note-types/{note_type}/fields", response_model=List[str])
async def list_fields(note_type: str, workspace: Workspace = Depends(get_workspace)) -> List[str]:
    return await workspace.flashcard_client.list_fields(note_type)


@router.post("/export", response_model=ExportSummary)
async def export_sentences(workspace: Workspace = Depends(get_workspace)) -> ExportSummary:
    return await workspace.export()


__all__ = ["router"]
