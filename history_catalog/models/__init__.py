"""Domain models used across the project."""

from .event import (  # noqa: F401
    HistoricalEvent,
    ParsedRow,
    ParseResult,
    PERSISTED_FIELDS,
    event_to_record,
    event_from_record,
    normalize_record,
)

__all__ = [
    "HistoricalEvent",
    "ParsedRow",
    "ParseResult",
    "PERSISTED_FIELDS",
    "event_to_record",
    "event_from_record",
    "normalize_record",
]
