from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, field_validator

from srs_sentences.models.annotation import KanaMode
from srs_sentences.models.difficulty import Difficulty
from srs_sentences.models.export import FieldSource


class AppSettings(BaseModel):
    api_key: str = ""
    remember_api_key: bool = False
    model: str = "gpt-4o-mini"

    dictionary_api_key: str = ""
    remember_dictionary_api_key: bool = False

    notes_template: str = "{word} here means “{meaning}”."
    default_count_preset: str = "1"

    anki_deck_name: str = ""
    anki_model_name: str = ""
    anki_field_mappings: Dict[str, Dict[str, FieldSource]] = Field(default_factory=dict)
    anki_tags: str = ""
    anki_include_difficulty_tag: bool = False

    enable_annotations: bool = False
    kana_mode: KanaMode = "hiragana"

    @field_validator("anki_field_mappings", mode="before")
    @classmethod
    def _drop_unknown_sources(cls, value):
        if not isinstance(value, dict):
            return {}
        known = {source.value for source in FieldSource}
        return {
            model_name: {
                field_name: (source if source in known else FieldSource.EMPTY.value)
                for field_name, source in (mapping or {}).items()
            }
            for model_name, mapping in value.items()
        }

    def requires_attention(self) -> bool:
        return not self.api_key or not self.model or not self.anki_deck_name or not self.anki_model_name

    def for_storage(self) -> "AppSettings":
        return self.model_copy(
            update={
                "api_key": self.api_key if self.remember_api_key else "",
                "dictionary_api_key": self.dictionary_api_key if self.remember_dictionary_api_key else "",
            }
        )


class SettingsRead(AppSettings):
    difficulty: Difficulty
    needs_attention: bool


class SettingsUpdate(AppSettings):
    difficulty: Difficulty = "beginner"
