from typing import List

from pydantic import BaseModel, ConfigDict, Field

from srs_sentences.models.word_entry import DefinitionStudyPriority, DefinitionValidity


class GeneratedSentenceSchema(BaseModel):
    def_index: int = Field(..., alias="defIndex", description="Number of the definition this sentence illustrates")
    text: str = Field(..., alias="jp", description="Japanese example sentence")
    gloss: str = Field(..., alias="en", description="Natural English translation")

    model_config = ConfigDict(populate_by_name=True)


class GeneratedSentencesSchema(BaseModel):
    items: List[GeneratedSentenceSchema]


class MeaningAnalysisItemSchema(BaseModel):
    meaning_index: int = Field(..., alias="meaningIndex")
    validity: DefinitionValidity
    study_priority: DefinitionStudyPriority = Field(..., alias="studyPriority")
    comment: str = ""
    colocations: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class MeaningAnalysisSchema(BaseModel):
    items: List[MeaningAnalysisItemSchema]
