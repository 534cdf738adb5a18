from fastapi import APIRouter, Depends

from srs_sentences.api.dependencies import get_workspace
from srs_sentences.models.annotation import AnnotationEngineStatus, AnnotationField, AnnotationRead
from srs_sentences.services.workspace import Workspace

router = APIRouter(tags=["annotations"])


@router.get("/annotations/status", response_model=AnnotationEngineStatus)
def annotation_status(workspace: Workspace = Depends(get_workspace)) -> AnnotationEngineStatus:
    engine = workspace.annotation_engine
    return AnnotationEngineStatus(status=engine.status, error=engine.error)


@router.post("/annotations/init", response_model=AnnotationEngineStatus)
async def init_annotations(workspace: Workspace = Depends(get_workspace)) -> AnnotationEngineStatus:
    await workspace.annotations_available()
    engine = workspace.annotation_engine
    return AnnotationEngineStatus(status=engine.status, error=engine.error)


@router.get("/entries/{entry_id}/annotations/{field}", response_model=AnnotationRead)
async def annotate_word(
    entry_id: str,
    field: AnnotationField,
    workspace: Workspace = Depends(get_workspace),
) -> AnnotationRead:
    return await workspace.annotate(entry_id, field)


@router.get("/entries/{entry_id}/sentences/{sentence_id}/annotations/{field}", response_model=AnnotationRead)
async def annotate_sentence(
    entry_id: str,
    sentence_id: str,
    field: AnnotationField,
    workspace: Workspace = Depends(get_workspace),
) -> AnnotationRead:
    return await workspace.annotate(entry_id, field, sentence_id=sentence_id)


__all__ = ["router"]
