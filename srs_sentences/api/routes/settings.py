from fastapi import APIRouter, Depends

from srs_sentences.api.dependencies import get_workspace
from srs_sentences.models.difficulty import DIFFICULTY_PROFILES, DifficultyProfile
from srs_sentences.models.export import FIELD_SOURCE_LABELS
from srs_sentences.models.settings import SettingsRead, SettingsUpdate
from srs_sentences.services.workspace import Workspace

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=SettingsRead)
def read_settings(workspace: Workspace = Depends(get_workspace)) -> SettingsRead:
    return workspace.read_settings()


@router.put("", response_model=SettingsRead)
def update_settings(payload: SettingsUpdate, workspace: Workspace = Depends(get_workspace)) -> SettingsRead:
    return workspace.update_settings(payload)


@router.get("/difficulties", response_model=dict[str, DifficultyProfile])
def list_difficulties() -> dict[str, DifficultyProfile]:
    return DIFFICULTY_PROFILES


@router.get("/field-sources", response_model=dict[str, str])
def list_field_sources() -> dict[str, str]:
    return {source.value: label for source, label in FIELD_SOURCE_LABELS.items()}


__all__ = ["router"]
