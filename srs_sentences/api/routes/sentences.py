from fastapi import APIRouter, Depends

from srs_sentences.api.dependencies import get_workspace
from srs_sentences.models.word_entry import ExportToggle, SentenceUpdate, WordEntry
from srs_sentences.services.workspace import Workspace

router = APIRouter(prefix="/entries/{entry_id}/sentences", tags=["sentences"])


@router.delete("", response_model=WordEntry)
def clear_sentences(entry_id: str, workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return workspace.clear_sentences(entry_id)


@router.put("/export", response_model=WordEntry)
def toggle_all_exports(
    entry_id: str,
    payload: ExportToggle,
    workspace: Workspace = Depends(get_workspace),
) -> WordEntry:
    return workspace.toggle_all_exports(entry_id, payload.enabled)


@router.patch("/{sentence_id}", response_model=WordEntry)
def edit_sentence(
    entry_id: str,
    sentence_id: str,
    payload: SentenceUpdate,
    workspace: Workspace = Depends(get_workspace),
) -> WordEntry:
    return workspace.edit_sentence(entry_id, sentence_id, payload)


@router.put("/{sentence_id}/export", response_model=WordEntry)
def set_sentence_export(
    entry_id: str,
    sentence_id: str,
    payload: ExportToggle,
    workspace: Workspace = Depends(get_workspace),
) -> WordEntry:
    return workspace.set_sentence_export(entry_id, sentence_id, payload.enabled)


@router.delete("/{sentence_id}", response_model=WordEntry)
def remove_sentence(entry_id: str, sentence_id: str, workspace: Workspace = Depends(get_workspace)) -> WordEntry:
    return workspace.remove_sentence(entry_id, sentence_id)


__all__ = ["router"]
