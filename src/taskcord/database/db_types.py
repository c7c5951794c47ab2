"""Conversions between Python values and their SQLite column representation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """UTC, second precision, ``+00:00`` suffix. Naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_db_bool(value: bool) -> int:
    return 1 if value else 0


def optional_int(value) -> Optional[int]:
    return int(value) if value is not None else None
