from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Tuple

TEMPLATE_MACRO_RE = re.compile(r"\{([a-zA-Z0-9_]+)\}")

NOTES_TEMPLATE_MACROS = ("word", "meaning", "defIndex", "reading", "difficulty")


def extract_template_macros(template: str) -> List[str]:
    seen: List[str] = []
    for match in TEMPLATE_MACRO_RE.finditer(template or ""):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


def validate_template_macros(template: str, allowlist: Iterable[str] = NOTES_TEMPLATE_MACROS) -> Tuple[List[str], bool]:
    """Return (unknown macros, whether the forbidden {notes} macro is used)."""
    allowed = set(allowlist)
    macros = extract_template_macros(template)
    unknown = [macro for macro in macros if macro not in allowed and macro != "notes"]
    return unknown, "notes" in macros


def apply_template(template: str, values: Mapping[str, Optional[object]]) -> str:
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    return TEMPLATE_MACRO_RE.sub(_replace, template or "")
