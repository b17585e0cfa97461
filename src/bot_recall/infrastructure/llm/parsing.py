"""Pulling JSON out of free-form language model output."""

import json
import re
from typing import Any

from bot_recall.core.errors import MalformedOutputError

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*|```")


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text).strip()


def _first_balanced(text: str, opener: str, closer: str) -> str | None:
    """First balanced ``opener ... closer`` span, ignoring brackets inside strings."""
    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find(opener, start + 1)
    return None


def _extract(text: str, opener: str, closer: str, kind: type) -> Any:
    cleaned = strip_code_fences(text or "")
    span = _first_balanced(cleaned, opener, closer)
    if span is None:
        raise MalformedOutputError(
            message=f"No JSON {kind.__name__} found in model output",
            details={"source": "llm_parsing", "operation": "extract_json", "preview": cleaned[:200]},
        )
    try:
        value = json.loads(span)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(
            message=f"Invalid JSON {kind.__name__} in model output: {e.msg}",
            details={"source": "llm_parsing", "operation": "extract_json", "preview": span[:200]},
        ) from e
    if not isinstance(value, kind):
        raise MalformedOutputError(
            message=f"Expected JSON {kind.__name__}, got {type(value).__name__}",
            details={"source": "llm_parsing", "operation": "extract_json"},
        )
    return value


def extract_json_array(text: str) -> list[Any]:
    """Parse the first balanced JSON array. Raises MalformedOutputError."""
    return _extract(text, "[", "]", list)


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first balanced JSON object. Raises MalformedOutputError."""
    return _extract(text, "{", "}", dict)
