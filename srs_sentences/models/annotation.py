from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

KanaMode = Literal["hiragana", "katakana"]
AnnotationField = Literal["kana", "ruby_html", "bracket"]
AnnotationStatus = Literal["idle", "loading", "ready", "error"]


class AnnotationCacheEntry(BaseModel):
    key: str
    kana: Optional[str] = None
    ruby_html: Optional[str] = None
    bracket: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AnnotationRead(BaseModel):
    field: AnnotationField
    value: str
    annotated: bool
    committed: bool = False


class AnnotationEngineStatus(BaseModel):
    status: AnnotationStatus
    error: Optional[str] = None
