"""Ids of the "main" events listed in ``Main.tsv``, used for visual emphasis."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet

from ..config import HISTORY_SOURCES_DIR, MAIN_EVENTS_FILENAME
from .identity import event_id
from .parsing import parse_tsv

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _load(path: Path) -> FrozenSet[str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.info("Main events file unavailable (%s): %s", path, exc)
        return frozenset()
    rows = parse_tsv(raw, path.name).rows
    return frozenset(event_id(row.date, row.url) for row in rows)


def load_main_event_ids(path: Path | None = None) -> FrozenSet[str]:
    """Return the ids of events listed in the main-events file (cached per path)."""
    if path is None:
        path = HISTORY_SOURCES_DIR / MAIN_EVENTS_FILENAME
    return _load(Path(path).resolve())

__all__ = ["load_main_event_ids"]
