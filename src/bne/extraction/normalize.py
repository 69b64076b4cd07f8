"""Canonicalize and deduplicate (name, type) pairs from a service response."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from bne.types import NAME_TYPES, ExtractedName


def _coerce_type(raw: Any) -> str:
    if isinstance(raw, str):
        candidate = raw.strip().lower()
        if candidate in NAME_TYPES:
            return candidate
    return "person"


def normalize(raw_entries: Iterable[Mapping[str, Any] | ExtractedName]) -> list[ExtractedName]:
    """Trim names, default bad types to ``person``, drop blanks and duplicates.

    Order of first appearance is preserved. Pure function, never raises.
    """
    seen: set[tuple[str, str]] = set()
    result: list[ExtractedName] = []
    for entry in raw_entries:
        if isinstance(entry, ExtractedName):
            raw_name, raw_type = entry.name, entry.type
        elif isinstance(entry, Mapping):
            raw_name, raw_type = entry.get("name"), entry.get("type")
        else:
            continue
        if not isinstance(raw_name, str):
            continue
        name = raw_name.strip()
        if not name:
            continue
        name_type = _coerce_type(raw_type)
        key = (name, name_type)
        if key in seen:
            continue
        seen.add(key)
        result.append(ExtractedName(name=name, type=name_type))
    return result
