"""Datetime helpers"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes.

    Some drivers (SQLite) hand back naive values for timezone-aware columns;
    everything this service stores is UTC, so the missing tzinfo is UTC.

    Args:
        dt: datetime or None

    Returns:
        Timezone-aware datetime, or None when dt is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
