"""Utility helpers for the StoreShelf service."""

from __future__ import annotations

import base64
import json
import re
from typing import Any, Sequence, TypeVar

T = TypeVar("T")

WHITESPACE_RE = re.compile(r"\s+")


def build_search_pattern(text: str) -> re.Pattern[str]:
    """Compile an ordered, gap-tolerant pattern from whitespace separated terms.

    ``"star wars"`` matches any name containing ``star`` followed somewhere
    later by ``wars``, ignoring case.
    """

    parts = WHITESPACE_RE.split(text.strip().lower())
    pattern = ".*".join(re.escape(part) for part in parts)
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:  # pragma: no cover - escaped input always compiles
        raise ValueError(f"invalid search pattern: {exc}") from exc


def paginate(items: Sequence[T], skip: int, limit: int) -> list[T]:
    """Return the ``[skip, skip + limit)`` window clamped to the sequence."""

    total = len(items)
    start = min(max(skip, 0), total)
    end = min(max(skip, 0) + max(limit, 0), total)
    return list(items[start:end])


def first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    return header_value.split(",", 1)[0].strip() or None


def decode_base64_json(value: str) -> dict[str, Any]:
    """Decode URL-safe base64 (padding optional) holding a JSON object."""

    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeError) as exc:
        raise ValueError("Invalid encoded payload") from exc
    if not isinstance(data, dict):
        raise ValueError("Encoded payload must be a JSON object")
    return data


def encode_base64_json(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
