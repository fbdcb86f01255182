"""Timestamp helpers shared by schemas and stores.

All timestamps are timezone-aware UTC datetimes. Stored JSON carries the
ISO-8601 form produced by pydantic.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

# Smallest step used when a clock reading must move strictly forward
_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def strictly_after(previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """Return a timestamp guaranteed to be later than ``previous``.

    Two saves inside the same clock tick (or a skewed clock) would otherwise
    produce ``updatedAt <= createdAt``.
    """
    now = ensure_aware(now) or utcnow()
    previous = ensure_aware(previous)
    if previous is not None and now <= previous:
        return previous + _TICK
    return now
