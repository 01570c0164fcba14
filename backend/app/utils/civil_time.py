"""Civil-time helpers for the terminal's fixed UTC-5 wall clock.

The terminal operates on Bogotá time, which has no daylight saving, so the
offset is treated as a constant -5h year-round. All instants stored in the
database are timezone-aware UTC datetimes.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone

CIVIL_UTC_OFFSET = timedelta(hours=-5)

_TTL_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w)$", re.IGNORECASE)
_TTL_UNIT_SECONDS = {
    "ms": 1 / 1000,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
    "w": 60 * 60 * 24 * 7,
}


def civil_to_instant(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
) -> datetime:
    """Interpret the fields as UTC-5 wall-clock time and return the UTC instant.

    >>> civil_to_instant(2025, 1, 1, 0, 0, 0).isoformat()
    '2025-01-01T05:00:00+00:00'
    """
    naive = datetime(year, month, day, hour, minute, second)
    return (naive - CIVIL_UTC_OFFSET).replace(tzinfo=timezone.utc)


def instant_to_civil_date(instant: datetime) -> date:
    """Calendar date of *instant* in the UTC-5 frame. Naive input is taken as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    shifted = instant.astimezone(timezone.utc) + CIVIL_UTC_OFFSET
    return shifted.date()


def offset_instant(instant: datetime, minutes: int | float) -> datetime:
    """Return *instant* shifted by *minutes* (negative moves back). No clamping."""
    return instant + timedelta(minutes=minutes)


def format_ymd(day: date) -> str:
    return f"{day.year:04d}{day.month:02d}{day.day:02d}"


def parse_ttl_to_seconds(ttl: str | int | float | None, fallback_seconds: int) -> int:
    """Parse a duration such as ``"15m"`` or ``"7d"`` into whole seconds.

    Numbers are taken as seconds. Surrounding quotes (common in .env files)
    are stripped. Anything unparsable or negative yields *fallback_seconds*.
    """
    if ttl is None:
        return fallback_seconds
    if isinstance(ttl, bool):
        return fallback_seconds
    if isinstance(ttl, (int, float)):
        if not math.isfinite(ttl):
            return fallback_seconds
        return max(0, int(ttl))

    raw = str(ttl).strip().strip('"').strip("'")
    match = _TTL_RE.match(raw)
    if not match:
        return fallback_seconds
    seconds = float(match.group(1)) * _TTL_UNIT_SECONDS[match.group(2).lower()]
    if not math.isfinite(seconds) or seconds < 0:
        return fallback_seconds
    return int(seconds)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
