"""Lookup of locally bundled event images.

The manifest is a JSON object mapping ``date|url`` to a filename inside the
pictures directory. A manifest hit takes precedence over any remote
thumbnail or stored preview.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from ..config import MANIFEST_FILENAME
from .identity import event_key

logger = logging.getLogger(__name__)


class LocalImageManifest:
    """In-memory view of the bundled image manifest."""

    def __init__(self, entries: Optional[Dict[str, str]] = None, pics_dir: Optional[Path] = None) -> None:
        self.entries: Dict[str, str] = dict(entries or {})
        self.pics_dir = Path(pics_dir) if pics_dir is not None else None

    @classmethod
    def load(cls, pics_dir: Path) -> "LocalImageManifest":
        """Read ``_manifest.json`` from *pics_dir*; a missing or broken file yields an empty manifest."""
        pics_dir = Path(pics_dir)
        path = pics_dir / MANIFEST_FILENAME
        if not path.exists():
            return cls({}, pics_dir)
        try:
            entries = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read image manifest %s: %s", path, exc)
            return cls({}, pics_dir)
        if not isinstance(entries, dict):
            logger.warning("Image manifest %s is not an object; ignoring it", path)
            return cls({}, pics_dir)
        return cls({str(k): str(v) for k, v in entries.items() if v}, pics_dir)

    def has(self, date: str, url: str) -> bool:
        return event_key(date, url) in self.entries

    def filename_for(self, date: str, url: str) -> Optional[str]:
        return self.entries.get(event_key(date, url))

    def path_for(self, date: str, url: str) -> Optional[Path]:
        """Return the bundled file for the event if the manifest names one that exists."""
        filename = self.filename_for(date, url)
        if not filename or self.pics_dir is None:
            return None
        path = self.pics_dir / filename
        return path if path.exists() else None

    def __len__(self) -> int:
        return len(self.entries)

__all__ = ["LocalImageManifest"]
