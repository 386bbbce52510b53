"""Datetime utilities for common operations."""

from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """
    Calculate number of hours between two datetimes.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Number of hours (can be fractional)
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 3600


def local_time(dt: datetime, tz_name: str) -> time:
    """Wall-clock time of ``dt`` in the named IANA timezone."""
    return ensure_utc(dt).astimezone(ZoneInfo(tz_name)).time()
