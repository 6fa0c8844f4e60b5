"""Wikipedia API access over a shared :class:`httpx.AsyncClient`.

The async client is bound to the running event loop, so a fresh one is
created per ingestion run via :func:`create_http_client` rather than kept as
a process-wide singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import unquote

import httpx

from ..config import HTTP_TIMEOUT, HTTP_USER_AGENT, WIKI_API_URL, WIKI_THUMB_SIZE
from ..errors import EnrichmentFetchError

logger = logging.getLogger(__name__)

RU_LANG: str = "ru"


@dataclass(slots=True)
class WikiPage:
    """Metadata returned for a single encyclopedia page."""

    title: str
    extract: str = ""
    thumbnail_url: Optional[str] = None
    ru_url: Optional[str] = None


def create_http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Return an :class:`httpx.AsyncClient` configured for the encyclopedia service."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(HTTP_TIMEOUT, connect=10.0),
        headers={"User-Agent": HTTP_USER_AGENT},
        follow_redirects=True,
        transport=transport,
    )


def is_wikipedia_url(url: str) -> bool:
    return "wikipedia.org" in url


def title_from_url(url: str) -> str:
    """Return the URL-decoded page title following ``/wiki/`` (empty if absent)."""
    _, sep, tail = url.partition("/wiki/")
    if not sep:
        return ""
    # drop query string and fragment
    tail = tail.split("?", 1)[0].split("#", 1)[0]
    return unquote(tail)


async def _query(client: httpx.AsyncClient, params: Dict[str, str]) -> Dict[str, Any]:
    try:
        response = await client.get(WIKI_API_URL, params=params)
        response.raise_for_status()
        return response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise EnrichmentFetchError(f"Wikipedia query failed for {params.get('titles')!r}: {exc}") from exc


def _first_page(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    pages = (payload.get("query") or {}).get("pages") or {}
    for page in pages.values():
        return page
    return None


async def fetch_wiki_page(client: httpx.AsyncClient, url: str) -> WikiPage:
    """Query title, intro extract, thumbnail and ``ru`` language link for *url*.

    A page missing at the service yields only a display title derived from
    the url slug. Network and decoding failures raise
    :class:`EnrichmentFetchError`.
    """
    title = title_from_url(url)
    payload = await _query(
        client,
        {
            "action": "query",
            "titles": title,
            "prop": "pageimages|extracts|langlinks",
            "format": "json",
            "redirects": "1",
            "piprop": "thumbnail",
            "pithumbsize": str(WIKI_THUMB_SIZE),
            "exintro": "1",
            "explaintext": "1",
            "exlimit": "1",
            "lllang": RU_LANG,
            "llprop": "url",
        },
    )

    page = _first_page(payload)
    if page is None or "missing" in page:
        logger.debug("Page not found for %s", url)
        return WikiPage(title=title.replace("_", " "))

    ru_url = None
    for link in page.get("langlinks") or []:
        if link.get("lang") == RU_LANG:
            ru_url = link.get("url")
            break

    return WikiPage(
        title=page.get("title") or title,
        extract=page.get("extract") or "",
        thumbnail_url=(page.get("thumbnail") or {}).get("source"),
        ru_url=ru_url,
    )


async def fetch_wiki_thumbnail(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """Return the thumbnail source url for *url*'s page, if it has one."""
    payload = await _query(
        client,
        {
            "action": "query",
            "titles": title_from_url(url),
            "prop": "pageimages",
            "format": "json",
            "redirects": "1",
            "piprop": "thumbnail",
            "pithumbsize": str(WIKI_THUMB_SIZE),
        },
    )
    page = _first_page(payload) or {}
    return (page.get("thumbnail") or {}).get("source")


async def download_image(client: httpx.AsyncClient, url: str) -> bytes:
    """Download *url* and return the raw bytes."""
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise EnrichmentFetchError(f"Fetch failed: {url}: {exc}") from exc
    if response.status_code != 200:
        raise EnrichmentFetchError(f"Fetch failed: {response.status_code} {url}")
    return response.content

__all__ = [
    "WikiPage",
    "create_http_client",
    "is_wikipedia_url",
    "title_from_url",
    "fetch_wiki_page",
    "fetch_wiki_thumbnail",
    "download_image",
]
