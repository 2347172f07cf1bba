"""Tolerant parsing of JSON embedded in free-text model responses.

Models wrap JSON in prose or code fences often enough that every stage needs
the same extraction step. The result is explicit: `Ok(value)` or
`Malformed(reason)`, and the caller decides between fallback and abort.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError


_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?|\n?\s*```\s*$")


T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Malformed:
    reason: str


ParseResult = Ok[T] | Malformed


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence, if present."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_object(text: str) -> ParseResult[dict[str, Any]]:
    """Parse the outermost `{...}` span of a response as a JSON object."""
    body = strip_code_fences(text or "")
    start = body.find("{")
    end = body.rfind("}")
    if start == -1 or end <= start:
        return Malformed("no JSON object in response")
    try:
        value = json.loads(body[start : end + 1])
    except json.JSONDecodeError as e:
        return Malformed(f"invalid JSON: {e.msg}")
    if not isinstance(value, dict):
        return Malformed("JSON value is not an object")
    return Ok(value)


def parse_model(text: str, model_type: type[M]) -> ParseResult[M]:
    """Parse a response into `model_type`, reporting why it did not fit."""
    parsed = parse_json_object(text)
    if isinstance(parsed, Malformed):
        return parsed
    try:
        return Ok(model_type.model_validate(parsed.value))
    except ValidationError as e:
        return Malformed(f"schema mismatch: {e.error_count()} error(s)")
