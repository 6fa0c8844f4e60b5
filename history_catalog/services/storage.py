"""Persistence layer for historical events.

Every read and write goes through the schema functions in
:mod:`history_catalog.models.event`, so only whitelisted fields cross the
storage boundary.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pymongo import ReplaceOne
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..errors import StoreError
from ..models import HistoricalEvent, event_from_record, event_to_record

logger = logging.getLogger(__name__)


class EventStore(Protocol):
    """CRUD interface the ingestion core consumes."""

    def get(self, event_id: str) -> Optional[HistoricalEvent]: ...

    def get_all(self) -> List[HistoricalEvent]: ...

    def get_in_range(self, start: str, end: str) -> List[HistoricalEvent]: ...

    def bulk_upsert(self, events: Iterable[HistoricalEvent]) -> int: ...

    def delete_by_ids(self, ids: Iterable[str]) -> int: ...


def _decode(records: Iterable[Dict[str, Any]]) -> List[HistoricalEvent]:
    events: List[HistoricalEvent] = []
    for record in records:
        try:
            events.append(event_from_record(record))
        except ValueError as exc:
            logger.warning("Skipping unreadable record: %s", exc)
    return events


class MongoEventStore:
    """Event store backed by a MongoDB collection keyed by event id."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def get(self, event_id: str) -> Optional[HistoricalEvent]:
        try:
            record = self._collection.find_one({"_id": event_id})
        except PyMongoError as exc:
            raise StoreError(f"get({event_id}) failed: {exc}") from exc
        if record is None:
            return None
        return event_from_record(record)

    def get_all(self) -> List[HistoricalEvent]:
        try:
            return _decode(self._collection.find({}))
        except PyMongoError as exc:
            raise StoreError(f"get_all failed: {exc}") from exc

    def get_in_range(self, start: str, end: str) -> List[HistoricalEvent]:
        """Return events whose date lies within ``[start, end]`` (ISO dates), by date."""
        try:
            cursor = self._collection.find({"date": {"$gte": start, "$lte": end}}).sort("date", 1)
            return _decode(cursor)
        except PyMongoError as exc:
            raise StoreError(f"get_in_range({start}, {end}) failed: {exc}") from exc

    def bulk_upsert(self, events: Iterable[HistoricalEvent]) -> int:
        operations = []
        for event in events:
            record = event_to_record(event)
            record["_id"] = event.id
            operations.append(ReplaceOne({"_id": event.id}, record, upsert=True))
        if not operations:
            return 0
        try:
            self._collection.bulk_write(operations, ordered=False)
        except PyMongoError as exc:
            raise StoreError(f"bulk_upsert of {len(operations)} events failed: {exc}") from exc
        logger.debug("Upserted %d events", len(operations))
        return len(operations)

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        try:
            result = self._collection.delete_many({"_id": {"$in": ids}})
        except PyMongoError as exc:
            raise StoreError(f"delete_by_ids failed: {exc}") from exc
        return result.deleted_count


class InMemoryEventStore:
    """Dict-backed event store used for dry runs."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        for record in records or []:
            event = event_from_record(record)
            self._records[event.id] = event_to_record(event)

    def get(self, event_id: str) -> Optional[HistoricalEvent]:
        record = self._records.get(event_id)
        return event_from_record(record) if record is not None else None

    def get_all(self) -> List[HistoricalEvent]:
        return _decode(self._records.values())

    def get_in_range(self, start: str, end: str) -> List[HistoricalEvent]:
        events = [e for e in self.get_all() if start <= e.date <= end]
        return sorted(events, key=lambda e: e.date)

    def bulk_upsert(self, events: Iterable[HistoricalEvent]) -> int:
        count = 0
        for event in events:
            self._records[event.id] = event_to_record(event)
            count += 1
        return count

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        deleted = 0
        for event_id in ids:
            if self._records.pop(event_id, None) is not None:
                deleted += 1
        return deleted

    def __len__(self) -> int:
        return len(self._records)


def get_default_store() -> MongoEventStore:
    """Return a :class:`MongoEventStore` on the configured collection."""
    from ..clients.mongodb_client import get_events_collection

    return MongoEventStore(get_events_collection())

__all__ = ["EventStore", "MongoEventStore", "InMemoryEventStore", "get_default_store"]
