"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from recipe_costing.utils.datetime_utils import utc_now

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Return value as a timezone-aware datetime.

    Naive datetimes are treated as UTC (SQLite drops tzinfo on round trip).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    return int(round(ensure_utc(value).timestamp() * 1000))


def from_epoch_ms(value: float) -> datetime:
    """Convert epoch milliseconds back to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
