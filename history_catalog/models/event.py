"""Definition of the `HistoricalEvent` dataclass and its storage schema.

`event_to_record` and `event_from_record` are the only conversions between the
domain model and the persistent store. Both enforce the field whitelist, so
legacy or unknown keys never leak into the domain model nor into the database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..config import DEFAULT_IMPORTANCE, ENRICH_VERSION

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Storage schema: python attribute -> persisted key
# ---------------------------------------------------------------------------
_FIELD_MAP: Dict[str, str] = {
    "id": "id",
    "date": "date",
    "url": "url",
    "title": "title",
    "lang": "lang",
    "thumbnail_url": "thumbnailUrl",
    "preview_blob": "previewBlob",
    "summary": "summary",
    "ru_url": "ruUrl",
    "tags": "tags",
    "importance": "importance",
    "source_file": "sourceFile",
    "source_line": "sourceLine",
    "updated_at": "updatedAt",
    "enrich_version": "enrichVersion",
    "lane_index": "laneIndex",
}

PERSISTED_FIELDS: frozenset[str] = frozenset(_FIELD_MAP.values())

_REQUIRED_KEYS = ("id", "date", "url")


@dataclass(slots=True)
class HistoricalEvent:
    """A dated event backed by a source url, enriched with encyclopedia metadata."""

    id: str
    date: str
    url: str
    title: str = ""
    lang: str = "en"
    thumbnail_url: Optional[str] = None
    preview_blob: Optional[bytes] = None
    summary: Optional[str] = None
    ru_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    importance: int = DEFAULT_IMPORTANCE
    source_file: str = ""
    source_line: int = 0
    updated_at: str = ""
    enrich_version: int = ENRICH_VERSION
    lane_index: Optional[int] = None

    @property
    def key(self) -> str:
        """Return the ``date|url`` key the event id is derived from."""
        return f"{self.date}|{self.url}"


@dataclass(slots=True)
class ParsedRow:
    """One validated data line of a source file."""

    date: str
    url: str
    image: str = ""
    title: str = ""
    lang: str = "en"
    source_line: int = 0


@dataclass(slots=True)
class ParseResult:
    """Rows accepted from a source file plus the number of rejected lines."""

    rows: List[ParsedRow] = field(default_factory=list)
    errors: int = 0


def event_to_record(event: HistoricalEvent) -> Dict[str, Any]:
    """Serialise *event* into a store record restricted to the whitelist.

    ``None`` values are omitted so optional fields stay absent in the store.
    """
    record: Dict[str, Any] = {}
    for attr, key in _FIELD_MAP.items():
        value = getattr(event, attr)
        if value is None:
            continue
        record[key] = list(value) if attr == "tags" else value
    return record


def event_from_record(record: Mapping[str, Any]) -> HistoricalEvent:
    """Build a :class:`HistoricalEvent` from a store record.

    Unknown keys are dropped. A record lacking ``id``, ``date`` or ``url``
    raises :class:`ValueError`.
    """
    data = dict(record)
    if "id" not in data and "_id" in data:
        data["id"] = data["_id"]
    data.pop("_id", None)

    missing = [key for key in _REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise ValueError(f"Stored record is missing required fields: {', '.join(missing)}")

    unknown = sorted(set(data) - PERSISTED_FIELDS)
    if unknown:
        logger.debug("Dropping unknown fields %s from record %s", unknown, data["id"])

    kwargs: Dict[str, Any] = {}
    for attr, key in _FIELD_MAP.items():
        if key in data:
            kwargs[attr] = data[key]
    if kwargs.get("preview_blob") is not None:
        # BSON binaries come back as bytes subclasses or memoryviews
        kwargs["preview_blob"] = bytes(kwargs["preview_blob"])
    if kwargs.get("tags") is None:
        kwargs.pop("tags", None)
    # records written before versioning count as version 0
    if kwargs.get("enrich_version") is None:
        kwargs["enrich_version"] = 0
    return HistoricalEvent(**kwargs)


def normalize_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Round-trip *record* through the schema, stripping legacy fields."""
    return event_to_record(event_from_record(record))

__all__ = [
    "HistoricalEvent",
    "ParsedRow",
    "ParseResult",
    "PERSISTED_FIELDS",
    "event_to_record",
    "event_from_record",
    "normalize_record",
]
