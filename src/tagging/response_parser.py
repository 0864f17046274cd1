# src/tagging/response_parser.py — v1
"""Lenient JSON extraction from raw model output.

Search-grounded calls cannot force JSON mode, so models sometimes wrap
the payload in markdown fences or surrounding prose.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_fences(text: str) -> str:
    """Remove markdown code fences."""
    return _FENCE_RE.sub("", text).replace("```", "").strip()


def parse_json_array(text: str | None) -> list[Any]:
    """Parse model output as a JSON array.

    Falls back to the outermost [...] span when the text has prose around
    it. Anything that still is not a list yields [] with a warning.
    """
    cleaned = strip_fences(text or "")
    if not cleaned:
        logger.warning("AI response was empty")
        return []

    try:
        parsed: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("AI response is not valid JSON, trying to recover an array")
        parsed = _recover(cleaned, _ARRAY_RE)

    if isinstance(parsed, dict):
        # Some models wrap the array: {"results": [...]}.
        lists = [v for v in parsed.values() if isinstance(v, list)]
        if len(lists) == 1:
            parsed = lists[0]

    if not isinstance(parsed, list):
        logger.warning("AI response was not an array (%s)", type(parsed).__name__)
        return []
    return parsed


def parse_json_object(text: str | None) -> dict[str, Any]:
    """Parse model output as a JSON object, or raise ValueError."""
    cleaned = strip_fences(text or "")
    try:
        parsed: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        parsed = _recover(cleaned, _OBJECT_RE)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _recover(text: str, pattern: re.Pattern[str]) -> Any:
    match = pattern.search(text)
    if match is None:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Failed to recover JSON from AI response: %s", e)
        return None
