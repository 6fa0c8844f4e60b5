"""Event enrichment: title, summary, thumbnail, preview and ``ru`` link."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from ..clients.wikipedia_client import download_image, fetch_wiki_page, is_wikipedia_url
from ..config import DEFAULT_IMPORTANCE, ENRICH_VERSION, PREVIEW_MAX_SIDE, SUMMARY_MAX_CHARS
from ..errors import EnrichmentFetchError, PreviewGenerationError
from ..models import HistoricalEvent, ParsedRow
from ..utils.datetime_utils import get_current_timestamp
from .identity import event_id
from .local_images import LocalImageManifest
from .previews import PreviewGenerator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcome types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class EnrichmentSuccess:
    event: HistoricalEvent


@dataclass(frozen=True, slots=True)
class EnrichmentFailure:
    url: str
    reason: str


EnrichmentOutcome = Union[EnrichmentSuccess, EnrichmentFailure]


def needs_enrichment(
    existing: Optional[HistoricalEvent],
    row: ParsedRow,
    *,
    has_local_pic: bool = False,
) -> bool:
    """Return ``True`` if *row* must be (re-)enriched given the stored event.

    Unchanged rows return ``False`` so re-ingestion makes no network calls.
    Events written by an older enrichment version are always refreshed.
    With *has_local_pic* the row image is not compared, since a bundled
    picture leaves the stored ``thumbnail_url`` empty.
    """
    if existing is None:
        return True
    title = row.title.strip()
    if title and title != existing.title:
        return True
    if row.lang != existing.lang:
        return True
    image = row.image.strip()
    if image and not has_local_pic and image != existing.thumbnail_url:
        return True
    return existing.enrich_version < ENRICH_VERSION


async def _build_preview(
    client: httpx.AsyncClient,
    thumbnail_url: str,
    generate_preview: PreviewGenerator,
) -> Optional[bytes]:
    try:
        blob = await download_image(client, thumbnail_url)
        return generate_preview(blob, PREVIEW_MAX_SIDE)
    except (EnrichmentFetchError, PreviewGenerationError) as exc:
        logger.info("No preview for %s: %s", thumbnail_url, exc)
        return None


async def enrich_row(
    row: ParsedRow,
    *,
    source_file: str,
    client: httpx.AsyncClient,
    manifest: LocalImageManifest,
    generate_preview: Optional[PreviewGenerator] = None,
) -> EnrichmentOutcome:
    """Merge *row* with remote metadata into a fresh :class:`HistoricalEvent`.

    Remote failures leave metadata empty; the row itself is still returned as
    a success. Only an unexpected error produces :class:`EnrichmentFailure`.
    """
    try:
        has_local_pic = manifest.has(row.date, row.url)
        title = row.title.strip() or None
        thumbnail_url = row.image.strip() or None
        summary: Optional[str] = None
        ru_url: Optional[str] = None

        if is_wikipedia_url(row.url):
            try:
                page = await fetch_wiki_page(client, row.url)
            except EnrichmentFetchError as exc:
                logger.warning("Enrichment failed for %s: %s", row.url, exc)
            else:
                title = title or page.title or None
                summary = page.extract[:SUMMARY_MAX_CHARS] or None
                if not thumbnail_url and not has_local_pic:
                    thumbnail_url = page.thumbnail_url
                ru_url = page.ru_url

        preview_blob: Optional[bytes] = None
        if has_local_pic:
            thumbnail_url = None
        elif thumbnail_url and generate_preview is not None:
            preview_blob = await _build_preview(client, thumbnail_url, generate_preview)

        event = HistoricalEvent(
            id=event_id(row.date, row.url),
            date=row.date,
            url=row.url,
            title=title or row.url,
            lang=row.lang,
            thumbnail_url=thumbnail_url,
            preview_blob=preview_blob,
            summary=summary,
            ru_url=ru_url,
            tags=[],
            importance=DEFAULT_IMPORTANCE,
            source_file=source_file,
            source_line=row.source_line,
            updated_at=get_current_timestamp(),
            enrich_version=ENRICH_VERSION,
        )
        return EnrichmentSuccess(event)
    except Exception as exc:  # noqa: BLE001 - one row must never abort the batch
        logger.exception("Unexpected enrichment error for %s", row.url)
        return EnrichmentFailure(url=row.url, reason=f"{type(exc).__name__}: {exc}")

__all__ = [
    "EnrichmentSuccess",
    "EnrichmentFailure",
    "EnrichmentOutcome",
    "needs_enrichment",
    "enrich_row",
]
