"""
UTC datetime utilities for consistent timezone handling.

Every timestamp the engine persists or compares (nextRun, lastExecutedAt,
lastError.timestamp) is timezone-aware UTC. Local store time only appears
inside schedule calculation.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Use this instead of datetime.now() (naive, local) or the deprecated
    datetime.utcnow().
    """
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure a datetime is UTC-aware.

    - If None, returns None
    - If naive, assumes UTC and attaches timezone
    - If aware, converts to UTC

    SQLite returns naive datetimes from DateTime(timezone=True) columns, so
    repositories call this on every value they read back.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)

