# Overview: Clock helpers. Stored timestamps are naive UTC; "today" is the server's local day.

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 with a trailing 'Z', to the second. Naive values are UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def local_day_bounds(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    [local midnight, next local midnight) expressed as UTC-naive datetimes,
    comparable with stored created_at values.

    `now` may be aware (any zone) or naive UTC; defaults to the current time.
    """
    if now is None:
        local_now = datetime.now().astimezone()
    elif now.tzinfo is None:
        local_now = now.replace(tzinfo=timezone.utc).astimezone()
    else:
        local_now = now.astimezone()

    start_local = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    end_local = (start_local + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)

    start = start_local.astimezone(timezone.utc).replace(tzinfo=None)
    end = end_local.astimezone(timezone.utc).replace(tzinfo=None)
    return start, end
