"""Deterministic URL slugs for generated pages."""

from __future__ import annotations

import re

from schemas.context import ExtensionContext


MAX_QUERY_SLUG_LENGTH = 80
MAX_CONTEXT_SLUG_LENGTH = 60
SUFFIX_LENGTH = 6

_NON_SLUG_RE = re.compile(r"[^a-z0-9\s-]")
_NON_CONTEXT_SLUG_RE = re.compile(r"[^a-z0-9-]")
_WHITESPACE_RE = re.compile(r"\s+")
_HYPHENS_RE = re.compile(r"-+")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= 1 << 31 else value


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_DIGITS[remainder])
    return "".join(reversed(digits))


def query_hash(text: str) -> str:
    """Base36 of the 32-bit `h * 31 + c` string hash, first six characters."""
    acc = 0
    for char in text:
        acc = _to_int32(_to_int32(acc) << 5) - acc + ord(char)
    return _base36(abs(acc))[:SUFFIX_LENGTH]


def generate_slug(query: str) -> str:
    slug = _NON_SLUG_RE.sub("", query.lower().strip())
    slug = _HYPHENS_RE.sub("-", _WHITESPACE_RE.sub("-", slug)).strip("-")
    return f"{slug[:MAX_QUERY_SLUG_LENGTH]}-{query_hash(query)}"


def generate_slug_from_context(context: ExtensionContext) -> str:
    """Slug from the query when there is one, else from the inferred profile."""
    if context.query:
        return generate_slug(context.query)

    profile = context.profile
    parts = [
        values[0]
        for values in (
            profile.segments,
            profile.use_cases,
            profile.products_considered,
        )
        if values
    ] or ["personalized-recommendation"]
    base = _NON_CONTEXT_SLUG_RE.sub("", "-".join(parts).lower())
    suffix = _base36(context.timestamp)[-SUFFIX_LENGTH:]
    return f"{base[:MAX_CONTEXT_SLUG_LENGTH]}-{suffix}"
