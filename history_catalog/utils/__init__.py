"""Utility functions for the history catalog project.

Re-exports the datetime helpers so that imports like
`from ..utils import get_current_timestamp` work as expected.
"""

from .datetime_utils import get_current_timestamp, is_calendar_date, date_to_days  # noqa: F401

__all__ = [
    "get_current_timestamp",
    "is_calendar_date",
    "date_to_days",
]
