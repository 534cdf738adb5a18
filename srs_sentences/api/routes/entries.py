from fastapi import APIRouter, Depends, Response

from srs_sentences.api.dependencies import get_workspace
from srs_sentences.models.word_entry import (
    DefinitionCountUpdate,
    DefinitionLookupRead,
    DefinitionsRawUpdate,
    EntryListRead,
    EntryUpdate,
    GenerationRead,
    GenerationRequest,
    WordEntry,
)
from srs_sentences.services.workspace import Workspace

router = APIRouter(prefix="/entries", tags=["entries"])


@router.get("", response_model=EntryListRead)
def list_entries(workspace: Workspace = Depends(get_workspace)) -> EntryListRead:
    return workspace.list_entries()


@router.post("", response_model=WordEntry, status_code=201)
def create_entry(workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return workspace.create_entry()


@router.get("/{entry_id}", response_model=WordEntry)
def get_entry(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return workspace.store.get(entry_id)


@router.patch("/{entry_id}", response_model=WordEntry)
def update_entry(entry_id: str, payload: EntryUpdate, workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return workspace.update_entry_fields(entry_id, payload)


@router.delete("/{entry_id}", status_code=204)
def delete_entry(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> Response:
    workspace.remove_entry(entry_id)
    return Response(status_code=204)


@router.post("/{entry_id}/select", response_model=WordEntry)
def select_entry(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return workspace.select_entry(entry_id)


@router.put("/{entry_id}/definitions", response_model=WordEntry)
def set_definitions(
    entry_id: str,
    payload: DefinitionsRawUpdate,
    workspace: Workspace = Depends(get_workspace),
) -> WordEntry:
    return workspace.set_definitions_raw(entry_id, payload.definitions_raw)


@router.put("/{entry_id}/definitions/{index}/count", response_model=WordEntry)
def set_definition_count(
    entry_id: str,
    index: int,
    payload: DefinitionCountUpdate,
    workspace: Workspace = Depends(get_workspace),
) -> WordEntry:
    return workspace.set_definition_count(entry_id, index, payload.count)


@router.post("/{entry_id}/definitions/lookup", response_model=DefinitionLookupRead)
async def lookup_definitions(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> DefinitionLookupRead:
    return await workspace.lookup_definitions(entry_id)


@router.post("/{entry_id}/analysis", response_model=WordEntry)
async def analyze_definitions(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return await workspace.analyze(entry_id)


@router.post("/{entry_id}/generations", response_model=GenerationRead)
async def generate_sentences(
    entry_id: str,
    payload: GenerationRequest = GenerationRequest(),
    workspace: Workspace = Depends(get_workspace),
) -> GenerationRead:
    outcome = await workspace.generate(entry_id, payload.difficulty)
    return GenerationRead(entry=outcome.entry, used_mock=outcome.used_mock, notice=outcome.notice)


__all__ = ["router"]
