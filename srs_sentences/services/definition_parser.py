from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from srs_sentences.models.word_entry import DefinitionSpec

logger = logging.getLogger(__name__)

# "1. foo", "2) foo", "3: foo", "4：foo", "5．foo"
DEFINITION_LINE_RE = re.compile(r"^(\d{1,3})\s*[.)：:．]\s*(.+)$")


@dataclass(frozen=True)
class ParsedDefinition:
    index: int
    text: str


def parse_definitions(raw: str) -> List[ParsedDefinition]:
    """Parse numbered definition lines; numbering is kept exactly as written."""
    parsed: List[ParsedDefinition] = []
    for line in (raw or "").splitlines():
        line = line.strip()
        if not line:
            continue
        match = DEFINITION_LINE_RE.match(line)
        if not match:
            continue
        text = match.group(2).strip()
        if not text:
            continue
        parsed.append(ParsedDefinition(index=int(match.group(1)), text=text))
    parsed.sort(key=lambda item: item.index)
    return parsed


def _preset_value(part: str) -> int:
    try:
        value = float(part)
    except ValueError:
        return 1
    if not math.isfinite(value) or value <= 0:
        return 1
    return int(value)


def apply_count_preset(parsed: Sequence[ParsedDefinition], preset: str) -> List[DefinitionSpec]:
    parts = [part.strip() for part in (preset or "").split("/") if part.strip()]
    counts = [_preset_value(part) for part in parts]
    fallback = counts[-1] if counts else 1
    specs: List[DefinitionSpec] = []
    for position, item in enumerate(parsed):
        count = counts[position] if position < len(counts) else fallback
        specs.append(DefinitionSpec(index=item.index, text=item.text, count=count))
    return specs


def merge_counts(next_specs: Sequence[DefinitionSpec], prev_specs: Sequence[DefinitionSpec]) -> List[DefinitionSpec]:
    prev_by_index = {spec.index: spec for spec in prev_specs}
    merged: List[DefinitionSpec] = []
    for spec in next_specs:
        prev = prev_by_index.get(spec.index)
        if prev is None:
            merged.append(spec)
            continue
        merged.append(
            spec.model_copy(
                update={
                    "count": prev.count,
                    "validity": prev.validity,
                    "study_priority": prev.study_priority,
                    "comment": prev.comment,
                    "colocations": prev.colocations,
                }
            )
        )
    return merged


def collapse_duplicate_indices(specs: Iterable[DefinitionSpec]) -> List[DefinitionSpec]:
    seen = set()
    unique: List[DefinitionSpec] = []
    for spec in specs:
        if spec.index in seen:
            logger.warning("Dropping duplicate definition number %s: %r", spec.index, spec.text)
            continue
        seen.add(spec.index)
        unique.append(spec)
    return unique


def apply_analysis(definitions: Sequence[DefinitionSpec], items: Iterable) -> List[DefinitionSpec]:
    """Merge meaning-analysis results into definitions by index; counts are left alone."""
    by_index = {item.meaning_index: item for item in items}
    result: List[DefinitionSpec] = []
    for definition in definitions:
        analysis = by_index.get(definition.index)
        if analysis is None:
            result.append(definition)
            continue
        result.append(
            definition.model_copy(
                update={
                    "validity": analysis.validity,
                    "study_priority": analysis.study_priority,
                    "comment": analysis.comment,
                    "colocations": list(analysis.colocations),
                }
            )
        )
    return result


def total_requested(definitions: Iterable[DefinitionSpec]) -> int:
    return sum(max(definition.count, 0) for definition in definitions)
