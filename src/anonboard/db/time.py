# src/anonboard/db/time.py
"""UTC helpers shared by the domain entities and the column types."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_aware_utc(value: datetime) -> datetime:
    """Return `value` in UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def as_naive_utc(value: datetime) -> datetime:
    """Return `value` converted to UTC with the tzinfo dropped, for storage."""
    return as_aware_utc(value).replace(tzinfo=None)
