from __future__ import annotations

from typing import Dict, Literal

from pydantic import BaseModel

Difficulty = Literal[
    "intro",
    "beginner",
    "intermediate",
    "native-like",
    "written-narrative",
    "ultra-literary",
]


class DifficultyProfile(BaseModel):
    label: str
    short_label: str
    short_help: str
    prompt_guidelines: str
    max_chars: int


DIFFICULTY_PROFILES: Dict[str, DifficultyProfile] = {
    "intro": DifficultyProfile(
        label="Intro Level",
        short_label="Intro Level",
        short_help="Very short, very explicit sentences for first exposure.",
        max_chars=35,
        prompt_guidelines="\n".join(
            [
                "Use short sentences with one main clause.",
                "Use very common grammar and high-frequency everyday vocabulary.",
                "Avoid idioms, slang, and heavy ellipsis (keep subjects/objects explicit).",
                "Prefer kana for uncommon kanji; keep wording simple and concrete.",
            ]
        ),
    ),
    "beginner": DifficultyProfile(
        label="Beginner",
        short_label="Beginner",
        short_help="Natural but simple sentences a learner can parse comfortably.",
        max_chars=55,
        prompt_guidelines="\n".join(
            [
                "Use short sentences, but allow basic subordinate clauses (because/if/when).",
                "Use common spoken grammar; keep phrasing natural but still explicit.",
                "Allow light ellipsis only when it doesn't create ambiguity.",
                "Idioms only if extremely common; avoid niche slang.",
            ]
        ),
    ),
    "intermediate": DifficultyProfile(
        label="Intermediate",
        short_label="Intermediate",
        short_help="Natural Japanese with clauses, ellipsis, and common idioms.",
        max_chars=80,
        prompt_guidelines="\n".join(
            [
                "Use natural sentence flow with multiple clauses when appropriate.",
                "Allow common ellipsis (dropping obvious subjects).",
                "Include common collocations and idioms if they fit naturally.",
                "Avoid overly academic or technical vocabulary unless necessary.",
            ]
        ),
    ),
    "native-like": DifficultyProfile(
        label="Native-like",
        short_label="Native-like",
        short_help="Fully natural Japanese, including cultural assumptions.",
        max_chars=110,
        prompt_guidelines="\n".join(
            [
                "Write as a native speaker would, with no simplification.",
                "Use natural omission/ellipsis, idioms, and culturally normal phrasing.",
                "Optimize for authenticity and nuance over clarity for learners.",
            ]
        ),
    ),
    "written-narrative": DifficultyProfile(
        label="Written Narrative",
        short_label="Written Narrative",
        short_help="Written sentences similar to novel narration; denser than everyday speech.",
        max_chars=140,
        prompt_guidelines="\n".join(
            [
                "Write in a written or narrational style rather than everyday conversation.",
                "Allow abstract phrasing and internal states, but avoid overtly essayistic prose.",
                "Use longer sentences and denser clause structures than native-like speech.",
                "The sentence should resemble narration from a novel or descriptive prose.",
            ]
        ),
    ),
    "ultra-literary": DifficultyProfile(
        label="Ultra-Literary",
        short_label="Ultra-Literary",
        short_help="Dense, abstract, literary Japanese intended to be difficult.",
        max_chars=200,
        prompt_guidelines="\n".join(
            [
                "Write in an overtly literary, abstract, or essayistic style.",
                "Prioritize nuance, metaphor, and conceptual depth over clarity.",
                "Allow long sentences with multiple clauses and embedded structures.",
                "Ellipsis and implicit subjects are encouraged.",
                "Do not simplify for learners; assume a highly literate native reader.",
            ]
        ),
    ),
}


def difficulty_label(key: str) -> str:
    profile = DIFFICULTY_PROFILES.get(key)
    if profile is None:
        return key
    return profile.short_label or profile.label
