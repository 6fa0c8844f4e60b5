import json
import unittest
from unittest.mock import MagicMock, patch
import os
import sys

import httpx

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from history_catalog.clients.wikipedia_client import create_http_client
from history_catalog.errors import PreviewGenerationError
from history_catalog.models import HistoricalEvent, ParsedRow
from history_catalog.services.enrichment import (
    EnrichmentFailure,
    EnrichmentSuccess,
    enrich_row,
    needs_enrichment,
)
from history_catalog.services.identity import event_id
from history_catalog.services.local_images import LocalImageManifest

WIKI_URL = "https://en.wikipedia.org/wiki/Fall_of_the_Berlin_Wall"
THUMB_URL = "https://upload.wikimedia.org/wall.jpg"


class TestNeedsEnrichment(unittest.TestCase):

    def setUp(self):
        self.existing = HistoricalEvent(
            id=event_id("1989-11-09", WIKI_URL),
            date="1989-11-09",
            url=WIKI_URL,
            title="Fall of the Berlin Wall",
            lang="en",
            thumbnail_url=THUMB_URL,
            enrich_version=1,
        )

    def _row(self, **overrides):
        values = dict(date="1989-11-09", url=WIKI_URL, image="", title="", lang="en", source_line=2)
        values.update(overrides)
        return ParsedRow(**values)

    def test_no_existing_event(self):
        self.assertTrue(needs_enrichment(None, self._row()))

    def test_unchanged_row(self):
        self.assertFalse(needs_enrichment(self.existing, self._row()))
        self.assertFalse(needs_enrichment(self.existing, self._row(title="Fall of the Berlin Wall")))
        self.assertFalse(needs_enrichment(self.existing, self._row(image=THUMB_URL)))

    def test_changed_title(self):
        self.assertTrue(needs_enrichment(self.existing, self._row(title="Die Wende")))

    def test_blank_title_does_not_trigger(self):
        self.assertFalse(needs_enrichment(self.existing, self._row(title="   ")))

    def test_changed_lang(self):
        self.assertTrue(needs_enrichment(self.existing, self._row(lang="de")))

    def test_changed_image(self):
        self.assertTrue(needs_enrichment(self.existing, self._row(image="https://img/other.png")))

    def test_bundled_picture_ignores_row_image(self):
        self.existing.thumbnail_url = None
        row = self._row(image="https://img/other.png")
        self.assertTrue(needs_enrichment(self.existing, row))
        self.assertFalse(needs_enrichment(self.existing, row, has_local_pic=True))

    @patch('history_catalog.services.enrichment.ENRICH_VERSION', 2)
    def test_outdated_enrich_version(self):
        self.assertTrue(needs_enrichment(self.existing, self._row()))


class TestEnrichRow(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.requests = []
        self.wiki_status = 200
        self.preview = MagicMock(return_value=b"preview-bytes")

    def _handler(self, request):
        self.requests.append(request)
        if request.url.host == "en.wikipedia.org":
            if self.wiki_status != 200:
                return httpx.Response(self.wiki_status)
            payload = {"query": {"pages": {"7": {
                "title": "Fall of the Berlin Wall",
                "extract": "x" * 500,
                "thumbnail": {"source": THUMB_URL},
                "langlinks": [{"lang": "ru", "url": "https://ru.wikipedia.org/wiki/Berlin"}],
            }}}}
            return httpx.Response(200, content=json.dumps(payload).encode())
        return httpx.Response(200, content=b"full-image")

    async def _enrich(self, row, manifest=None):
        async with create_http_client(transport=httpx.MockTransport(self._handler)) as client:
            return await enrich_row(
                row,
                source_file="cold_war.tsv",
                client=client,
                manifest=manifest or LocalImageManifest(),
                generate_preview=self.preview,
            )

    async def test_wikipedia_row_is_fully_enriched(self):
        row = ParsedRow(date="1989-11-09", url=WIKI_URL, source_line=4)
        outcome = await self._enrich(row)

        self.assertIsInstance(outcome, EnrichmentSuccess)
        event = outcome.event
        self.assertEqual(event.id, event_id("1989-11-09", WIKI_URL))
        self.assertEqual(event.title, "Fall of the Berlin Wall")
        self.assertEqual(len(event.summary), 300)
        self.assertEqual(event.thumbnail_url, THUMB_URL)
        self.assertEqual(event.preview_blob, b"preview-bytes")
        self.assertEqual(event.ru_url, "https://ru.wikipedia.org/wiki/Berlin")
        self.assertEqual(event.source_file, "cold_war.tsv")
        self.assertEqual(event.source_line, 4)
        self.assertEqual(event.importance, 3)
        self.assertEqual(event.enrich_version, 1)
        self.assertEqual(event.tags, [])
        self.assertTrue(event.updated_at)
        self.preview.assert_called_once_with(b"full-image", 320)

    async def test_explicit_title_and_image_win(self):
        row = ParsedRow(date="1989-11-09", url=WIKI_URL, title="The Wall Falls", image="https://img.example/own.png")
        outcome = await self._enrich(row)

        self.assertEqual(outcome.event.title, "The Wall Falls")
        self.assertEqual(outcome.event.thumbnail_url, "https://img.example/own.png")
        self.assertEqual(self.requests[-1].url.host, "img.example")

    async def test_local_picture_clears_remote_images(self):
        row = ParsedRow(date="1989-11-09", url=WIKI_URL)
        manifest = LocalImageManifest({f"1989-11-09|{WIKI_URL}": "1989-11-09.webp"})
        outcome = await self._enrich(row, manifest)

        self.assertIsNone(outcome.event.thumbnail_url)
        self.assertIsNone(outcome.event.preview_blob)
        self.assertEqual(outcome.event.summary, "x" * 300)
        self.preview.assert_not_called()
        self.assertEqual(len(self.requests), 1)

    async def test_wiki_failure_keeps_row_data(self):
        self.wiki_status = 500
        row = ParsedRow(date="1989-11-09", url=WIKI_URL)
        outcome = await self._enrich(row)

        self.assertIsInstance(outcome, EnrichmentSuccess)
        self.assertEqual(outcome.event.title, WIKI_URL)
        self.assertIsNone(outcome.event.summary)
        self.assertIsNone(outcome.event.thumbnail_url)
        self.assertIsNone(outcome.event.preview_blob)

    async def test_non_wikipedia_url_makes_no_metadata_call(self):
        row = ParsedRow(date="1989-11-09", url="https://example.org/wall")
        outcome = await self._enrich(row)

        self.assertEqual(outcome.event.title, "https://example.org/wall")
        self.assertEqual(self.requests, [])

    async def test_preview_failure_leaves_thumbnail(self):
        self.preview.side_effect = PreviewGenerationError("not an image")
        row = ParsedRow(date="1989-11-09", url=WIKI_URL)
        outcome = await self._enrich(row)

        self.assertIsInstance(outcome, EnrichmentSuccess)
        self.assertEqual(outcome.event.thumbnail_url, THUMB_URL)
        self.assertIsNone(outcome.event.preview_blob)

    async def test_unexpected_error_is_a_failure_outcome(self):
        self.preview.side_effect = RuntimeError("decoder crashed")
        row = ParsedRow(date="1989-11-09", url=WIKI_URL)
        with self.assertLogs("history_catalog.services.enrichment", level="ERROR"):
            outcome = await self._enrich(row)

        self.assertIsInstance(outcome, EnrichmentFailure)
        self.assertEqual(outcome.url, WIKI_URL)
        self.assertIn("decoder crashed", outcome.reason)


if __name__ == '__main__':
    unittest.main()
