"""Pull a JSON array out of free-form model output."""

from __future__ import annotations

import json

__all__ = ["JsonExtractionError", "extract_json_array"]


class JsonExtractionError(ValueError):
    """Raised when no well-formed JSON array can be recovered from text."""


def extract_json_array(text: str) -> list[object]:
    """Decode the span from the first ``[`` to the last ``]``.

    Surrounding prose and code fences are ignored. Anything that does not decode to a list
    raises ``JsonExtractionError``.
    """

    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end < start:
        raise JsonExtractionError("response does not contain a JSON array")

    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise JsonExtractionError(f"invalid JSON array: {exc.msg}") from exc

    if not isinstance(parsed, list):
        raise JsonExtractionError(f"expected JSON array, got {type(parsed).__name__}")
    return parsed
