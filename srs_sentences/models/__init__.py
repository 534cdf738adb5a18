from .annotation import AnnotationCacheEntry, AnnotationRead, KanaMode, AnnotationField
from .difficulty import DIFFICULTY_PROFILES, Difficulty, DifficultyProfile
from .export import FieldSource, FlashcardNote, ExportSummary, ExportItemResult, ConnectionStatus
from .settings import AppSettings
from .word_entry import (
    DefinitionSpec,
    GenerationBatch,
    BatchDefinition,
    SentenceGeneration,
    SentenceItem,
    DefinitionSnapshot,
    WordEntry,
)

__all__ = [
    "AnnotationCacheEntry",
    "AnnotationRead",
    "KanaMode",
    "AnnotationField",
    "DIFFICULTY_PROFILES",
    "Difficulty",
    "DifficultyProfile",
    "FieldSource",
    "FlashcardNote",
    "ExportSummary",
    "ExportItemResult",
    "ConnectionStatus",
    "AppSettings",
    "DefinitionSpec",
    "GenerationBatch",
    "BatchDefinition",
    "SentenceGeneration",
    "SentenceItem",
    "DefinitionSnapshot",
    "WordEntry",
]
