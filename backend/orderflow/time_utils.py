"""
Time helpers.

All timestamps are stored as UTC-naive datetimes and rendered on the wire as
ISO-8601 with a trailing 'Z'.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def _as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return _as_utc_naive(datetime.now(timezone.utc))


def minutes_from_now(minutes: int) -> datetime:
    """ETA helper for shipments created without an explicit estimate."""
    return utcnow() + timedelta(minutes=minutes)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a client-supplied ISO-8601 string.

    Blank -> None. Naive input is taken as UTC; offsets (including 'Z') are
    converted. Raises ValueError on garbage so callers can map it to a
    ValidationError naming the field.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to second precision, e.g. 2026-10-19T08:30:00Z."""
    if dt is None:
        return None
    stamp = _as_utc_naive(dt).replace(microsecond=0)
    return stamp.isoformat() + "Z"
