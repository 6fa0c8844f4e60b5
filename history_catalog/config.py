"""Centralised configuration for history_catalog.

Environment variables are loaded once and all related constants are
grouped by concern for easier maintenance.
"""

from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Load environment variables from `.env` (if present)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# Persistent store (from environment)
# ---------------------------------------------------------------------------
MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "history")
MONGODB_COLLECTION: str = os.getenv("MONGODB_COLLECTION", "historical_events")

# ---------------------------------------------------------------------------
# Source files and bundled images
# ---------------------------------------------------------------------------
HISTORY_SOURCES_DIR: Path = Path(os.getenv("HISTORY_SOURCES_DIR", "data/history/sources"))
HISTORY_PICS_DIR: Path = Path(os.getenv("HISTORY_PICS_DIR", "data/history/HistoryPics"))
MANIFEST_FILENAME: str = "_manifest.json"
MAIN_EVENTS_FILENAME: str = "Main.tsv"

# ---------------------------------------------------------------------------
# Remote encyclopedia service
# ---------------------------------------------------------------------------
WIKI_API_URL: str = os.getenv("WIKI_API_URL", "https://en.wikipedia.org/w/api.php")
HTTP_USER_AGENT: str = os.getenv(
    "HTTP_USER_AGENT", "history-catalog/0.1 (timeline ingestion; contact: admin@localhost)"
)
HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))
# outbound requests in flight at once
WIKI_CONCURRENCY: int = 4
# thumbnail size requested from the page-images API
WIKI_THUMB_SIZE: int = 640

# ---------------------------------------------------------------------------
# Enrichment
# Bump ENRICH_VERSION whenever enrichment output changes; stored events with
# an older version are re-enriched on the next run.
# ---------------------------------------------------------------------------
ENRICH_VERSION: int = 1
SUMMARY_MAX_CHARS: int = 300
PREVIEW_MAX_SIDE: int = 320
DEFAULT_IMPORTANCE: int = 3

# ---------------------------------------------------------------------------
# Lane assignment
# ---------------------------------------------------------------------------
MAX_LANES: int = 3
CANONICAL_WIDTH_DAYS: int = 45

# ---------------------------------------------------------------------------
# Re-exported names
# ---------------------------------------------------------------------------
__all__ = [
    # store
    "MONGODB_URI",
    "MONGODB_DATABASE",
    "MONGODB_COLLECTION",
    # files
    "HISTORY_SOURCES_DIR",
    "HISTORY_PICS_DIR",
    "MANIFEST_FILENAME",
    "MAIN_EVENTS_FILENAME",
    # remote
    "WIKI_API_URL",
    "HTTP_USER_AGENT",
    "HTTP_TIMEOUT",
    "WIKI_CONCURRENCY",
    "WIKI_THUMB_SIZE",
    # enrichment
    "ENRICH_VERSION",
    "SUMMARY_MAX_CHARS",
    "PREVIEW_MAX_SIDE",
    "DEFAULT_IMPORTANCE",
    # lanes
    "MAX_LANES",
    "CANONICAL_WIDTH_DAYS",
]
