"""Service layer modules grouping business logic by concern.

This module provides convenience re-exports so that callers can simply do for
example `from history_catalog.services import parse_tsv` without having to
know which underlying module provides the symbol.
"""

from .parsing import parse_tsv  # noqa: F401
from .identity import event_id, event_key  # noqa: F401
from .concurrency import run_with_limit  # noqa: F401
from .enrichment import enrich_row, needs_enrichment  # noqa: F401
from .lanes import assign_lanes  # noqa: F401
from .local_images import LocalImageManifest  # noqa: F401
from .storage import EventStore, MongoEventStore, InMemoryEventStore  # noqa: F401
from .sync import sync_source_file  # noqa: F401
from .main_events import load_main_event_ids  # noqa: F401

__all__ = [
    "parse_tsv",
    "event_id",
    "event_key",
    "run_with_limit",
    "enrich_row",
    "needs_enrichment",
    "assign_lanes",
    "LocalImageManifest",
    "EventStore",
    "MongoEventStore",
    "InMemoryEventStore",
    "sync_source_file",
    "load_main_event_ids",
]
