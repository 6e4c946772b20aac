"""Utility helpers for Event Desk."""

from __future__ import annotations

from datetime import UTC, datetime
import re

_email_pattern = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# Largest value a 64-bit INTEGER column can hold.
MAX_ROW_ID = 2**63 - 1


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def is_valid_email(value: str | None) -> bool:
    """Return True for a basic ``local@domain.tld`` shaped address."""
    if not isinstance(value, str):
        return False
    return bool(_email_pattern.fullmatch(value))


def parse_positive_int(raw: object) -> int | None:
    """Parse ``raw`` as a strictly positive integer, or return ``None``.

    Accepts ints and base-10 digit strings up to MAX_ROW_ID; booleans,
    floats and anything with a sign or surrounding junk are rejected.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if 0 < raw <= MAX_ROW_ID else None
    text = raw.strip() if isinstance(raw, str) else ""
    if text.isascii() and text.isdecimal():
        value = int(text)
        return value if 0 < value <= MAX_ROW_ID else None
    return None


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
