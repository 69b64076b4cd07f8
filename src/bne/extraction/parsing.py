"""LLM response parsing for the names payload."""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from bne.errors import ExtractionParseError


class RawName(BaseModel):
    """One entry as the model returned it; type is checked by the normalizer."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str | None = None
    type: str | None = None


class NamesPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    names: list[RawName]


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _load_json(response: str) -> Any:
    cleaned = _FENCE.sub("", response.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Model wrapped the JSON in prose: take the outermost object or array.
    for pattern in (r"\{.*\}", r"\[.*\]"):
        match = re.search(pattern, cleaned, re.DOTALL)
        if match:
            try:
                return json.loads(match.group())
            except json.JSONDecodeError:
                continue
    raise ExtractionParseError(f"No JSON found in response: {response[:200]!r}")


def parse_names_response(response: str) -> list[dict[str, Any]]:
    """Parse ``{"names": [{"name", "type"}, ...]}`` (or a bare list of those).

    Raises:
        ExtractionParseError: If the response is empty or not in that shape.
    """
    if not response or not response.strip():
        raise ExtractionParseError("Empty response")

    data = _load_json(response)
    if isinstance(data, list):
        data = {"names": data}

    try:
        payload = NamesPayload.model_validate(data)
    except ValidationError as e:
        raise ExtractionParseError(f"Unexpected payload shape: {e.error_count()} errors") from e

    return [entry.model_dump() for entry in payload.names]
