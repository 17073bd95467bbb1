from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

# Timestamps are stored UTC-naive (SQLite CURRENT_TIMESTAMP is UTC).


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_filter_bound(value: str | None, *, end: bool = False) -> datetime | None:
    """
    Parse a start/end query bound for sales filters.

    Accepts a calendar date ("2026-10-18") or an ISO datetime with an
    optional "Z" or offset. A date as an end bound covers the whole day.
    Offsets are converted to UTC; naive values are taken as UTC.
    Raises ValueError on anything else.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()

    if len(text) == 10:
        day = date.fromisoformat(text)
        if end:
            return datetime.combine(day + timedelta(days=1), time.min) - timedelta(microseconds=1)
        return datetime.combine(day, time.min)

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: datetime | None) -> str | None:
    """ISO-8601 with a trailing 'Z', to the second; naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
