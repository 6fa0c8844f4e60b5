"""Content-addressed identity for historical events."""

from __future__ import annotations

import hashlib


def event_key(date: str, url: str) -> str:
    """Return the ``date|url`` key shared by the id and the image manifest."""
    return f"{date}|{url}"


def event_id(date: str, url: str) -> str:
    """Return the hex SHA-1 digest of ``date|url``."""
    return hashlib.sha1(event_key(date, url).encode("utf-8")).hexdigest()

__all__ = ["event_key", "event_id"]
