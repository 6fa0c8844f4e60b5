"""Utility functions for working with dates and times."""

from datetime import date, datetime, timezone

__all__ = [
    "get_current_timestamp",
    "is_calendar_date",
    "date_to_days",
]

_EPOCH = date(1970, 1, 1)


def get_current_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string.

    Stored as ``updatedAt`` on every enrichment write.
    """
    return datetime.now(tz=timezone.utc).isoformat()


def is_calendar_date(value: str) -> bool:
    """Return ``True`` if *value* is a real ``YYYY-MM-DD`` calendar date."""
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def date_to_days(value: str) -> float:
    """Return *value* (``YYYY-MM-DD``) as days since the Unix epoch."""
    return float((date.fromisoformat(value) - _EPOCH).days)
