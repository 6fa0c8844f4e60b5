"""Per-file synchronisation of source rows with the persistent store."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import AbstractSet, Awaitable, Callable, Iterable, List, Optional, Union

from ..config import WIKI_CONCURRENCY
from ..models import HistoricalEvent, ParsedRow
from ..utils.datetime_utils import get_current_timestamp
from .concurrency import run_with_limit
from .enrichment import EnrichmentFailure, EnrichmentOutcome, EnrichmentSuccess, needs_enrichment
from .identity import event_id
from .local_images import LocalImageManifest
from .parsing import parse_tsv
from .storage import EventStore

logger = logging.getLogger(__name__)

RowEnricher = Callable[[ParsedRow, str], Awaitable[EnrichmentOutcome]]


@dataclass(slots=True)
class FileSyncReport:
    """Counts produced by synchronising one source file."""

    file_name: str
    parsed: int = 0
    removed: int = 0
    enriched: int = 0
    relocated: int = 0
    upserted: int = 0
    failed: int = 0
    errors: int = 0


def stale_event_ids(
    stored_events: Iterable[HistoricalEvent],
    file_name: str,
    current_ids: AbstractSet[str],
    claimed_ids: AbstractSet[str] = frozenset(),
) -> List[str]:
    """Return ids of stored events from *file_name* whose row no longer exists.

    Ids in *claimed_ids* belong to rows another file already provided during
    the same run and are never returned.
    """
    return [
        e.id
        for e in stored_events
        if e.source_file == file_name and e.id not in current_ids and e.id not in claimed_ids
    ]


def _with_provenance(existing: HistoricalEvent, row: ParsedRow, file_name: str) -> Optional[HistoricalEvent]:
    """Return *existing* pointed at its current source position, or ``None`` if it already is."""
    if existing.source_file == file_name and existing.source_line == row.source_line:
        return None
    return dataclasses.replace(
        existing,
        source_file=file_name,
        source_line=row.source_line,
        updated_at=get_current_timestamp(),
    )


async def sync_source_file(
    file_name: str,
    raw: str,
    *,
    store: EventStore,
    stored_events: Iterable[HistoricalEvent],
    enrich: RowEnricher,
    concurrency: int = WIKI_CONCURRENCY,
    manifest: Optional[LocalImageManifest] = None,
    claimed_ids: Optional[set[str]] = None,
) -> FileSyncReport:
    """Bring the store in line with the current content of one source file.

    Stale events of this file are deleted first; rows that are new or changed
    are enriched with at most *concurrency* remote calls in flight. Unchanged
    rows that moved to another file or line get their ``source_file`` and
    ``source_line`` rewritten without any remote call. Everything is written
    in a single bulk upsert.

    *claimed_ids* is shared across the files of one run: ids of this file's
    rows are added to it, and ids already in it are never deleted as stale.
    Store reads run in a worker thread so a blocking driver does not stall
    enrichments in flight.
    """
    parsed = parse_tsv(raw, file_name)
    report = FileSyncReport(file_name=file_name, parsed=len(parsed.rows), errors=parsed.errors)
    claimed = claimed_ids if claimed_ids is not None else set()

    current_ids = {event_id(row.date, row.url) for row in parsed.rows}
    to_remove = stale_event_ids(stored_events, file_name, current_ids, claimed)
    claimed.update(current_ids)
    if to_remove:
        report.removed = store.delete_by_ids(to_remove)
        logger.info("Removed %d events from %s", report.removed, file_name)

    def make_task(row: ParsedRow) -> Callable[[], Awaitable[Union[EnrichmentOutcome, HistoricalEvent, None]]]:
        async def task() -> Union[EnrichmentOutcome, HistoricalEvent, None]:
            existing = await asyncio.to_thread(store.get, event_id(row.date, row.url))
            has_local_pic = manifest is not None and manifest.has(row.date, row.url)
            if existing is not None and not needs_enrichment(existing, row, has_local_pic=has_local_pic):
                return _with_provenance(existing, row, file_name)
            return await enrich(row, file_name)

        return task

    outcomes = await run_with_limit([make_task(row) for row in parsed.rows], concurrency)

    to_upsert: List[HistoricalEvent] = []
    for row, outcome in zip(parsed.rows, outcomes):
        if isinstance(outcome, EnrichmentSuccess):
            to_upsert.append(outcome.event)
            report.enriched += 1
        elif isinstance(outcome, HistoricalEvent):
            to_upsert.append(outcome)
            report.relocated += 1
        elif isinstance(outcome, EnrichmentFailure):
            logger.warning("%s:%d: enrichment failed: %s", file_name, row.source_line, outcome.reason)
            report.failed += 1

    if to_upsert:
        report.upserted = store.bulk_upsert(to_upsert)

    if report.upserted or report.errors or report.removed:
        logger.info(
            "Ingested %s: %d events (%d relocated), %d removed, errors: %d",
            file_name,
            report.upserted,
            report.relocated,
            report.removed,
            report.errors,
        )
    return report

__all__ = ["FileSyncReport", "RowEnricher", "stale_event_ids", "sync_source_file"]
