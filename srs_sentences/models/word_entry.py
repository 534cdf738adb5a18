from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from srs_sentences.models.annotation import AnnotationCacheEntry
from srs_sentences.models.difficulty import Difficulty

EntryStatus = Literal["draft", "generating", "ready", "error"]
DefinitionValidity = Literal["valid", "dubious", "not_a_sense"]
DefinitionStudyPriority = Literal["recall", "recognize", "ignore_for_now"]
SentenceSource = Literal["generated", "edited"]
ExportStatus = Literal["new", "exported", "failed"]


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DefinitionSpec(BaseModel):
    index: int
    text: str
    count: int = Field(default=1, ge=0)
    validity: Optional[DefinitionValidity] = None
    study_priority: Optional[DefinitionStudyPriority] = None
    comment: Optional[str] = None
    colocations: Optional[List[str]] = None

    model_config = ConfigDict(frozen=True)


class BatchDefinition(BaseModel):
    index: int
    text: str
    count: int

    model_config = ConfigDict(frozen=True)


class GenerationBatch(BaseModel):
    id: int
    created_at: datetime = Field(default_factory=utcnow)
    difficulty: str
    definitions: List[BatchDefinition] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class SentenceGeneration(BaseModel):
    id: str = Field(default_factory=new_id)
    def_index: int
    def_sub_index: int
    text: str
    gloss: str
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    difficulty: str

    model_config = ConfigDict(frozen=True)


class DefinitionSnapshot(BaseModel):
    index: int
    text: str

    model_config = ConfigDict(frozen=True)


class SentenceItem(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str
    gloss: str = ""
    notes: str = ""
    source: SentenceSource = "generated"
    created_at: datetime = Field(default_factory=utcnow)
    export_enabled: bool = True
    export_status: ExportStatus = "new"
    generation_id: Optional[str] = None
    batch_id: Optional[int] = None
    def_sub_index: Optional[int] = None
    definition_snapshot: Optional[DefinitionSnapshot] = None
    difficulty: Optional[str] = None
    annotation_cache: Optional[AnnotationCacheEntry] = None

    model_config = ConfigDict(frozen=True)


class WordEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    word: str = ""
    reading: Optional[str] = ""
    definitions_raw: str = ""
    definitions: List[DefinitionSpec] = Field(default_factory=list)
    generations: List[SentenceGeneration] = Field(default_factory=list)
    generation_batches: List[GenerationBatch] = Field(default_factory=list)
    sentences: List[SentenceItem] = Field(default_factory=list)
    annotation_cache: Optional[AnnotationCacheEntry] = None
    status: EntryStatus = "draft"
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    def find_sentence(self, sentence_id: str) -> Optional[SentenceItem]:
        for sentence in self.sentences:
            if sentence.id == sentence_id:
                return sentence
        return None


class EntryListRead(BaseModel):
    selected_id: str
    entries: List[WordEntry] = Field(default_factory=list)


class EntryUpdate(BaseModel):
    word: Optional[str] = None
    reading: Optional[str] = None


class DefinitionsRawUpdate(BaseModel):
    definitions_raw: str


class DefinitionCountUpdate(BaseModel):
    count: int = Field(ge=0)


class SentenceUpdate(BaseModel):
    text: Optional[str] = None
    gloss: Optional[str] = None
    notes: Optional[str] = None
    export_enabled: Optional[bool] = None


class DefinitionLookupRead(BaseModel):
    entry: WordEntry
    filled: bool
    message: Optional[str] = None


class GenerationRead(BaseModel):
    entry: WordEntry
    used_mock: bool
    notice: Optional[str] = None


class ExportToggle(BaseModel):
    enabled: bool


class GenerationRequest(BaseModel):
    difficulty: Optional[Difficulty] = None
