"""Structured-output recovery for model text that should hold one JSON object.

Only these malformations are handled:

1. A surrounding fenced code block (```json ... ```).
2. One list split into two adjacent lists, e.g. ``"posts": ["a"], ["b"]``.
   The model "continues" a field by opening a fresh bracket. Healed by
   joining ``"] , ["`` (any whitespace) into ``", "``.
3. A trailing comma directly before ``}`` or ``]``.

Repairs 2 and 3 run together, and only after a direct parse has failed, so
already-valid output is never rewritten. Do not grow this into a general
"fix anything" parser.
"""

import json
import re
from typing import Any

from philagora.errors import StructuredOutputError

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")
_SPLIT_LIST = re.compile(r'"\s*\]\s*,\s*\[\s*"')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned)
        cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def repair_json(text: str) -> str:
    """Apply the split-list merge and trailing-comma removal. Pure text -> text."""
    fixed = _SPLIT_LIST.sub('", "', text)
    fixed = _TRAILING_COMMA.sub(r"\1", fixed)
    return fixed


def parse_json_response(raw_text: str) -> dict[str, Any]:
    """Parse model output into a JSON object, repairing known malformations.

    Raises:
        StructuredOutputError: when neither the cleaned nor the repaired text
            parses to a JSON object. The raw text rides along on the error.
    """
    cleaned = strip_code_fence(raw_text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(repair_json(cleaned))
        except json.JSONDecodeError as exc:
            raise StructuredOutputError(f"Unrecoverable JSON: {exc}", raw_text) from exc

    if not isinstance(parsed, dict):
        raise StructuredOutputError(
            f"Expected a JSON object, got {type(parsed).__name__}", raw_text
        )
    return parsed
