from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple, Type

from pydantic import BaseModel, ValidationError

from nerds.errors import ParseError

NO_BOUNDARIES_REASON = "no JSON object boundaries found"


def find_json_boundaries(text: str) -> Tuple[int, int]:
    """Return (start, end) of the span from the first '{' to the last '}' inclusive."""

    start = text.find("{") if text else -1
    end = text.rfind("}") if text else -1
    if start == -1 or end == -1 or end < start:
        raise ParseError(NO_BOUNDARIES_REASON, raw_text=text)
    return start, end


def normalize_boundary_braces(span: str) -> str:
    """Collapse one doubled brace at each end of the span.

    Only the outer boundary is touched, and only when it is doubled on both
    sides; ``{{``/``}}`` pairs inside the object are legitimate content.
    """

    if len(span) >= 4 and span.startswith("{{") and span.endswith("}}"):
        return span[1:-1]
    return span


def extract_json_object(text: str) -> Dict[str, Any]:
    """Delimit, normalise and strictly parse the outermost JSON object in text."""

    start, end = find_json_boundaries(text)
    candidate = normalize_boundary_braces(text[start : end + 1])
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON: {exc.msg} (line {exc.lineno} column {exc.colno})", raw_text=text) from exc
    if not isinstance(data, dict):
        raise ParseError("JSON payload is not an object", raw_text=text)
    return data


def validate_payload(
    data: Dict[str, Any],
    schema_model: Type[BaseModel],
) -> Tuple[BaseModel, List[str]]:
    """Validate strictly first, then laxly, recording coercion as a warning."""

    warnings: List[str] = []
    try:
        obj = schema_model.model_validate(data, strict=True)
        return obj, warnings
    except ValidationError as strict_exc:
        try:
            obj = schema_model.model_validate(data, strict=False)
        except ValidationError as exc:
            raise exc from strict_exc
        warnings.append("validation_coerced")
        return obj, warnings


__all__ = [
    "NO_BOUNDARIES_REASON",
    "find_json_boundaries",
    "normalize_boundary_braces",
    "extract_json_object",
    "validate_payload",
]
