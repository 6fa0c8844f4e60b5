"""Singleton accessor for the MongoDB client and the events collection."""

from __future__ import annotations

from pymongo import MongoClient
from pymongo.collection import Collection

from ..config import MONGODB_COLLECTION, MONGODB_DATABASE, MONGODB_URI

_client: MongoClient | None = None


def get_mongo_client() -> MongoClient:
    """Return a singleton :class:`pymongo.MongoClient`."""
    global _client
    if _client is None:
        _client = MongoClient(MONGODB_URI)
    return _client


def get_events_collection() -> Collection:
    """Return the collection holding historical event records, indexed by date."""
    collection = get_mongo_client()[MONGODB_DATABASE][MONGODB_COLLECTION]
    collection.create_index("date")
    collection.create_index("sourceFile")
    return collection

__all__ = ["get_mongo_client", "get_events_collection"]
