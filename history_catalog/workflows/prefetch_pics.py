"""Offline download of event images into the bundled pictures directory.

Idempotent: a ``date|url`` pair whose manifest entry points to an existing
file is skipped, and existing filenames are never changed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse

import httpx

from ..logging_config import logging as _  # noqa: F401  # ensure config applied early
from ..clients.wikipedia_client import create_http_client, download_image, fetch_wiki_thumbnail
from ..config import HISTORY_PICS_DIR, HISTORY_SOURCES_DIR, MANIFEST_FILENAME
from ..errors import EnrichmentFetchError
from ..models import ParsedRow
from ..services.identity import event_key
from ..services.parsing import parse_tsv

logger = logging.getLogger(__name__)

RETRY_ATTEMPTS: int = 3
RETRY_DELAY_SECONDS: float = 0.5
DEFAULT_EXTENSION: str = ".webp"


@dataclass(slots=True)
class PrefetchStats:
    total_events: int = 0
    downloaded: int = 0
    downloaded_manual: int = 0
    hit: int = 0
    skipped_manual: int = 0
    skipped_no_wiki_image: int = 0
    failed: int = 0
    failed_list: List[Tuple[str, str, str]] = field(default_factory=list)
    skipped_no_wiki_list: List[Tuple[str, str]] = field(default_factory=list)


def extension_from_url(url: str) -> str:
    """Return the image extension implied by *url*'s path (``.webp`` if unknown)."""
    path = urlparse(url).path.lower()
    if path.endswith(".webp"):
        return ".webp"
    if path.endswith((".jpg", ".jpeg")):
        return ".jpg"
    if path.endswith(".png"):
        return ".png"
    return DEFAULT_EXTENSION


def next_filename_for_date(
    manifest: Dict[str, str],
    date: str,
    pics_dir: Path,
    ext: str = DEFAULT_EXTENSION,
) -> str:
    """Return ``<date><ext>`` or the first free ``<date>_<n><ext>`` (n >= 2)."""
    used: Set[str] = {
        name for name in manifest.values() if name.startswith(f"{date}.") or name.startswith(f"{date}_")
    }
    if pics_dir.is_dir():
        used.update(
            p.name for p in pics_dir.iterdir() if p.name.startswith(date) and p.name != MANIFEST_FILENAME
        )

    candidate = f"{date}{ext}"
    n = 2
    while candidate in used:
        candidate = f"{date}_{n}{ext}"
        n += 1
    return candidate


def is_http_url(value: str) -> bool:
    value = value.strip()
    return value.startswith("http://") or value.startswith("https://")


def load_manifest(pics_dir: Path) -> Dict[str, str]:
    path = pics_dir / MANIFEST_FILENAME
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def write_manifest(pics_dir: Path, manifest: Dict[str, str]) -> None:
    path = pics_dir / MANIFEST_FILENAME
    path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")


async def download_with_retry(
    client: httpx.AsyncClient,
    image_url: str,
    dest: Path,
    *,
    attempts: int = RETRY_ATTEMPTS,
    delay: float = RETRY_DELAY_SECONDS,
) -> None:
    """Download *image_url* into *dest*, retrying on failure."""
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            dest.write_bytes(await download_image(client, image_url))
            return
        except (EnrichmentFetchError, OSError) as exc:
            last_error = exc
            logger.debug("Attempt %d/%d for %s failed: %s", attempt, attempts, image_url, exc)
            if attempt < attempts:
                await asyncio.sleep(delay)
    raise EnrichmentFetchError(str(last_error) if last_error else "Download failed")


def collect_rows(sources_dir: Path) -> List[ParsedRow]:
    rows: List[ParsedRow] = []
    for path in sorted(sources_dir.glob("*.tsv")):
        rows.extend(parse_tsv(path.read_text(encoding="utf-8"), path.name).rows)
    return rows


def _existing_file(pics_dir: Path, manifest: Dict[str, str], key: str) -> Optional[str]:
    filename = manifest.get(key)
    if filename and (pics_dir / filename).exists():
        return filename
    return None


async def prefetch_history_pics(
    sources_dir: Path = HISTORY_SOURCES_DIR,
    pics_dir: Path = HISTORY_PICS_DIR,
    *,
    include_manual: bool = False,
    client: Optional[httpx.AsyncClient] = None,
    retry_delay: float = RETRY_DELAY_SECONDS,
) -> PrefetchStats:
    """Fetch missing event images and record them in the manifest.

    Rows carrying a manual ``image`` are skipped unless *include_manual* is set
    and the image is an http(s) url.
    """
    sources_dir, pics_dir = Path(sources_dir), Path(pics_dir)
    pics_dir.mkdir(parents=True, exist_ok=True)

    manifest = load_manifest(pics_dir)
    rows = collect_rows(sources_dir)
    stats = PrefetchStats(total_events=len(rows))
    changed = False

    owns_client = client is None
    http = client if client is not None else create_http_client()
    try:
        for row in rows:
            key = event_key(row.date, row.url)
            manual_image = row.image.strip()

            if manual_image and not (include_manual and is_http_url(manual_image)):
                logger.info("[historypics] SKIP_MANUAL_IMAGE %s", key)
                stats.skipped_manual += 1
                continue

            existing = _existing_file(pics_dir, manifest, key)
            if existing:
                logger.info("[historypics] HIT %s -> %s", key, existing)
                stats.hit += 1
                continue

            if manual_image:
                image_url: Optional[str] = manual_image
                ext = extension_from_url(manual_image)
            else:
                try:
                    image_url = await fetch_wiki_thumbnail(http, row.url)
                except EnrichmentFetchError as exc:
                    logger.info("[historypics] FAIL_QUERY %s: %s", key, exc)
                    stats.failed += 1
                    stats.failed_list.append((key, row.url, str(exc)))
                    continue
                ext = DEFAULT_EXTENSION
                if not image_url:
                    logger.info("[historypics] SKIP_NO_WIKI_IMAGE %s", key)
                    stats.skipped_no_wiki_image += 1
                    stats.skipped_no_wiki_list.append((key, row.url))
                    continue

            filename = manifest.get(key) or next_filename_for_date(manifest, row.date, pics_dir, ext)
            try:
                await download_with_retry(http, image_url, pics_dir / filename, delay=retry_delay)
            except EnrichmentFetchError as exc:
                logger.info("[historypics] FAIL_DOWNLOAD %s: %s", key, exc)
                stats.failed += 1
                stats.failed_list.append((key, row.url, str(exc)))
                continue

            manifest[key] = filename
            changed = True
            if manual_image:
                stats.downloaded_manual += 1
                logger.info("[historypics] DOWNLOADED_MANUAL %s -> %s", key, filename)
            else:
                stats.downloaded += 1
                logger.info("[historypics] saved %s", filename)
    finally:
        if owns_client:
            await http.aclose()

    if changed:
        write_manifest(pics_dir, manifest)

    _log_summary(stats)
    return stats


def _log_summary(stats: PrefetchStats) -> None:
    logger.info("--- Summary ---")
    logger.info("totalEvents: %d", stats.total_events)
    logger.info("downloaded: %d", stats.downloaded)
    logger.info("downloadedManual: %d", stats.downloaded_manual)
    logger.info("hit: %d", stats.hit)
    logger.info("skippedManual: %d", stats.skipped_manual)
    logger.info("skippedNoWikiImage: %d", stats.skipped_no_wiki_image)
    logger.info("failed: %d", stats.failed)
    if stats.failed_list:
        logger.info("--- Failed (eventKey + url) ---")
        for key, url, error in stats.failed_list:
            logger.info("%s | %s | %s", key, url, error)
    if stats.skipped_no_wiki_list:
        logger.info("--- SkippedNoWikiImage (eventKey + url) ---")
        for key, url in stats.skipped_no_wiki_list:
            logger.info("%s | %s", key, url)


def run(
    sources_dir: Path = HISTORY_SOURCES_DIR,
    pics_dir: Path = HISTORY_PICS_DIR,
    *,
    include_manual: bool = False,
) -> PrefetchStats:
    """Synchronous entry point for the prefetch tool."""
    return asyncio.run(prefetch_history_pics(sources_dir, pics_dir, include_manual=include_manual))

__all__ = [
    "PrefetchStats",
    "extension_from_url",
    "next_filename_for_date",
    "download_with_retry",
    "prefetch_history_pics",
    "run",
]
