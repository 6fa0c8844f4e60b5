"""End-to-end history ingestion: source files -> enrichment -> store -> lanes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Set

import httpx

from ..logging_config import logging as _  # noqa: F401  # ensure config applied early
from ..clients.wikipedia_client import create_http_client
from ..config import HISTORY_PICS_DIR, HISTORY_SOURCES_DIR, WIKI_CONCURRENCY
from ..errors import SourceFileReadError
from ..models import ParsedRow
from ..services.enrichment import EnrichmentOutcome, enrich_row
from ..services.lanes import assign_lanes
from ..services.local_images import LocalImageManifest
from ..services.previews import PreviewGenerator, generate_preview
from ..services.storage import EventStore, get_default_store
from ..services.sync import FileSyncReport, sync_source_file

logger = logging.getLogger(__name__)

SOURCE_GLOB: str = "*.tsv"


@dataclass(slots=True)
class IngestReport:
    """Aggregate counts for one ingestion run."""

    files: int = 0
    events_upserted: int = 0
    events_removed: int = 0
    enrichment_failures: int = 0
    errors: int = 0
    lanes_assigned: int = 0

    def add(self, file_report: FileSyncReport) -> None:
        self.events_upserted += file_report.upserted
        self.events_removed += file_report.removed
        self.enrichment_failures += file_report.failed
        self.errors += file_report.errors


class IngestionOrchestrator:
    """Coordinates parsing, sync, enrichment and lane assignment.

    Only one run is active at a time: a call to :meth:`run_ingest` while a run
    is in flight awaits that same run instead of starting another. Once it
    settles, the next call starts a fresh run.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        sources_dir: Path = HISTORY_SOURCES_DIR,
        pics_dir: Path = HISTORY_PICS_DIR,
        http_client_factory: Callable[[], httpx.AsyncClient] = create_http_client,
        preview_generator: Optional[PreviewGenerator] = generate_preview,
        concurrency: int = WIKI_CONCURRENCY,
    ) -> None:
        self._store = store
        self._sources_dir = Path(sources_dir)
        self._pics_dir = Path(pics_dir)
        self._http_client_factory = http_client_factory
        self._preview_generator = preview_generator
        self._concurrency = concurrency
        self._inflight: Optional[asyncio.Future[IngestReport]] = None

    @property
    def running(self) -> bool:
        return self._inflight is not None

    async def run_ingest(self) -> IngestReport:
        """Run ingestion once, or join the run already in progress."""
        if self._inflight is not None:
            logger.info("Ingestion already in progress; waiting for it to finish")
            return await asyncio.shield(self._inflight)

        task = asyncio.get_running_loop().create_task(self._run())
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Future[IngestReport]) -> None:
        if self._inflight is task:
            self._inflight = None

    # ------------------------------------------------------------------
    # Run steps
    # ------------------------------------------------------------------

    def _source_files(self) -> List[Path]:
        if not self._sources_dir.is_dir():
            logger.warning("Sources directory %s does not exist", self._sources_dir)
            return []
        return sorted(self._sources_dir.glob(SOURCE_GLOB))

    @staticmethod
    def _read_source(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceFileReadError(f"Failed to load {path.name}: {exc}") from exc

    async def _run(self) -> IngestReport:
        logger.info("Starting history ingestion from %s", self._sources_dir)
        report = IngestReport()

        stored_events = self._store.get_all()
        manifest = LocalImageManifest.load(self._pics_dir)
        claimed_ids: Set[str] = set()

        async with self._http_client_factory() as client:

            async def enrich(row: ParsedRow, file_name: str) -> EnrichmentOutcome:
                return await enrich_row(
                    row,
                    source_file=file_name,
                    client=client,
                    manifest=manifest,
                    generate_preview=self._preview_generator,
                )

            for path in self._source_files():
                report.files += 1
                try:
                    raw = self._read_source(path)
                except SourceFileReadError as exc:
                    logger.warning("%s", exc)
                    report.errors += 1
                    continue

                try:
                    file_report = await sync_source_file(
                        path.name,
                        raw,
                        store=self._store,
                        stored_events=stored_events,
                        enrich=enrich,
                        concurrency=self._concurrency,
                        manifest=manifest,
                        claimed_ids=claimed_ids,
                    )
                except Exception:  # noqa: BLE001 - one file must not stop the others
                    logger.exception("Failed to ingest %s", path.name)
                    report.errors += 1
                    continue
                report.add(file_report)

        report.lanes_assigned = self._assign_lanes()
        _log_stats(report)
        return report

    def _assign_lanes(self) -> int:
        """Recompute lanes over every stored event and write them back."""
        try:
            events = self._store.get_all()
            if not events:
                return 0
            with_lanes = assign_lanes(events)
            self._store.bulk_upsert(with_lanes)
        except Exception:
            logger.error("Lane assignment write-back failed; stored lanes may be stale")
            raise
        logger.info("Assigned laneIndex to %d events", len(with_lanes))
        return len(with_lanes)


def _log_stats(report: IngestReport) -> None:
    logger.info("=== History Ingestion Statistics ===")
    logger.info("Source files processed: %d", report.files)
    logger.info("Events upserted: %d", report.events_upserted)
    logger.info("Events removed: %d", report.events_removed)
    logger.info("Enrichment failures: %d", report.enrichment_failures)
    logger.info("Errors: %d", report.errors)
    logger.info("Events with lanes: %d", report.lanes_assigned)
    logger.info("====================================")


def run(
    store: Optional[EventStore] = None,
    *,
    sources_dir: Path = HISTORY_SOURCES_DIR,
    pics_dir: Path = HISTORY_PICS_DIR,
) -> IngestReport:
    """Execute the full pipeline once against *store* (MongoDB by default)."""
    orchestrator = IngestionOrchestrator(
        store if store is not None else get_default_store(),
        sources_dir=sources_dir,
        pics_dir=pics_dir,
    )
    return asyncio.run(orchestrator.run_ingest())

__all__ = ["IngestReport", "IngestionOrchestrator", "run"]
