"""Convenience re-exports for external service accessors."""

from .mongodb_client import get_mongo_client, get_events_collection  # noqa: F401
from .wikipedia_client import create_http_client  # noqa: F401

__all__ = [
    "get_mongo_client",
    "get_events_collection",
    "create_http_client",
]
