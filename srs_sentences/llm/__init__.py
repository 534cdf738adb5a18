from .schemas import (
    GeneratedSentenceSchema,
    GeneratedSentencesSchema,
    MeaningAnalysisItemSchema,
    MeaningAnalysisSchema,
)
from .chains import build_structured_chain

__all__ = [
    "GeneratedSentenceSchema",
    "GeneratedSentencesSchema",
    "MeaningAnalysisItemSchema",
    "MeaningAnalysisSchema",
    "build_structured_chain",
]
