from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class FieldSource(str, Enum):
    EMPTY = ""
    WORD = "word"
    READING = "reading"
    WORD_KANA = "wordKana"
    WORD_BRACKET = "wordFuri"
    WORD_RUBY = "wordFuriHtml"
    MEANING = "meaning"
    MEANING_NUMBER = "meaningNumber"
    SENTENCE = "sentenceJp"
    SENTENCE_KANA = "sentenceJpKana"
    SENTENCE_BRACKET = "sentenceJpFuri"
    SENTENCE_RUBY = "sentenceJpFuriHtml"
    SENTENCE_GLOSS = "sentenceEn"
    DIFFICULTY = "difficulty"
    NOTES = "notes"


FIELD_SOURCE_LABELS: Dict[FieldSource, str] = {
    FieldSource.EMPTY: "(Nothing)",
    FieldSource.WORD: "Word",
    FieldSource.READING: "Reading",
    FieldSource.WORD_KANA: "Word (Kana)",
    FieldSource.WORD_BRACKET: "Word (Furigana)",
    FieldSource.WORD_RUBY: "Word (Furigana HTML)",
    FieldSource.MEANING: "Word Meaning",
    FieldSource.MEANING_NUMBER: "Meaning Number",
    FieldSource.SENTENCE: "Sentence (JP)",
    FieldSource.SENTENCE_KANA: "Sentence (JP Kana)",
    FieldSource.SENTENCE_BRACKET: "Sentence (JP Furigana)",
    FieldSource.SENTENCE_RUBY: "Sentence (JP Furigana HTML)",
    FieldSource.SENTENCE_GLOSS: "Sentence (EN)",
    FieldSource.DIFFICULTY: "Difficulty",
    FieldSource.NOTES: "Notes",
}


class FlashcardNote(BaseModel):
    deck_name: str
    model_name: str
    fields: Dict[str, str]
    tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(protected_namespaces=())


class ExportItemResult(BaseModel):
    entry_id: str
    sentence_id: str
    status: Literal["exported", "failed"]
    note_id: Optional[int] = None


class ExportSummary(BaseModel):
    succeeded: int
    failed: int
    partial: bool
    message: str
    items: List[ExportItemResult] = Field(default_factory=list)


class ConnectionStatus(BaseModel):
    kind: Literal["online", "outdated", "offline"]
    version: Optional[int] = None
