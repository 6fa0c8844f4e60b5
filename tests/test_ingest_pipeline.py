import asyncio
import hashlib
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch
import os
import sys

import httpx

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from history_catalog.clients.wikipedia_client import create_http_client
from history_catalog.errors import StoreError
from history_catalog.models import event_from_record
from history_catalog.services.identity import event_id
from history_catalog.services.storage import InMemoryEventStore
from history_catalog.workflows.ingest_pipeline import IngestReport, IngestionOrchestrator

EXAMPLE_URL = "https://en.wikipedia.org/wiki/Example"


class _DeleteFailingStore(InMemoryEventStore):

    def delete_by_ids(self, ids):
        raise StoreError("disk full")


class TestIngestionOrchestrator(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.sources = root / "sources"
        self.pics = root / "pics"
        self.sources.mkdir()
        self.pics.mkdir()
        self.requests = []
        self.store = InMemoryEventStore()

    def tearDown(self):
        self._tmp.cleanup()

    def _handler(self, request):
        self.requests.append(request)
        title = request.url.params.get("titles", "")
        payload = {"query": {"pages": {"1": {"title": title.replace("_", " "), "extract": f"About {title}."}}}}
        return httpx.Response(200, content=json.dumps(payload).encode())

    def _orchestrator(self, store=None):
        return IngestionOrchestrator(
            store or self.store,
            sources_dir=self.sources,
            pics_dir=self.pics,
            http_client_factory=lambda: create_http_client(transport=httpx.MockTransport(self._handler)),
            preview_generator=None,
        )

    def _write(self, name, text):
        (self.sources / name).write_text(text, encoding="utf-8")

    async def test_end_to_end_single_event(self):
        self._write("test.tsv", f"date\turl\ttitle\n2020-03-15\t{EXAMPLE_URL}\tExample Event\n")

        report = await self._orchestrator().run_ingest()

        events = self.store.get_all()
        self.assertEqual(len(events), 1)
        event = events[0]
        self.assertEqual(event.id, hashlib.sha1(f"2020-03-15|{EXAMPLE_URL}".encode()).hexdigest())
        self.assertEqual(event.title, "Example Event")
        self.assertEqual(event.source_file, "test.tsv")
        self.assertEqual(event.source_line, 2)
        self.assertEqual(event.summary, "About Example.")
        self.assertIn(event.lane_index, (0, 1, 2))
        self.assertEqual(report.files, 1)
        self.assertEqual(report.events_upserted, 1)
        self.assertEqual(report.lanes_assigned, 1)
        self.assertEqual(report.errors, 0)

    async def test_second_run_makes_no_enrichment_calls(self):
        self._write("a.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n1815-06-18\thttps://en.wikipedia.org/wiki/Waterloo\n")
        orchestrator = self._orchestrator()

        await orchestrator.run_ingest()
        first_calls = len(self.requests)
        lanes = {e.id: e.lane_index for e in self.store.get_all()}

        report = await orchestrator.run_ingest()

        self.assertEqual(first_calls, 2)
        self.assertEqual(len(self.requests), first_calls)
        self.assertEqual(report.events_upserted, 0)
        self.assertEqual({e.id: e.lane_index for e in self.store.get_all()}, lanes)

    async def test_removed_row_is_deleted_and_other_files_untouched(self):
        self._write("a.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n1815-06-18\thttps://en.wikipedia.org/wiki/Waterloo\n")
        self._write("b.tsv", "date\turl\n1944-06-06\thttps://en.wikipedia.org/wiki/D-Day\n")
        await self._orchestrator().run_ingest()

        self._write("a.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n")
        report = await self._orchestrator().run_ingest()

        ids = {e.id for e in self.store.get_all()}
        self.assertEqual(report.events_removed, 1)
        self.assertNotIn(event_id("1815-06-18", "https://en.wikipedia.org/wiki/Waterloo"), ids)
        self.assertIn(event_id("1944-06-06", "https://en.wikipedia.org/wiki/D-Day"), ids)
        self.assertIn(event_id("2020-03-15", EXAMPLE_URL), ids)

    async def test_row_moved_to_earlier_file_survives(self):
        self._write("c.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n")
        orchestrator = self._orchestrator()
        await orchestrator.run_ingest()
        calls = len(self.requests)

        self._write("b.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n")
        self._write("c.tsv", "date\turl\n")
        report = await orchestrator.run_ingest()

        event = self.store.get(event_id("2020-03-15", EXAMPLE_URL))
        self.assertIsNotNone(event)
        self.assertEqual(event.source_file, "b.tsv")
        self.assertEqual(report.events_removed, 0)
        self.assertEqual(len(self.requests), calls)

    async def test_bundled_picture_row_makes_no_calls_on_second_run(self):
        (self.pics / "_manifest.json").write_text(
            json.dumps({f"2020-03-15|{EXAMPLE_URL}": "2020-03-15.webp"}), encoding="utf-8"
        )
        self._write("a.tsv", f"date\turl\timage\n2020-03-15\t{EXAMPLE_URL}\thttps://img.example/x.jpg\n")
        orchestrator = self._orchestrator()

        await orchestrator.run_ingest()
        await orchestrator.run_ingest()

        self.assertEqual(len(self.requests), 1)
        self.assertIsNone(self.store.get(event_id("2020-03-15", EXAMPLE_URL)).thumbnail_url)

    async def test_unreadable_file_does_not_stop_others(self):
        (self.sources / "broken.tsv").write_bytes(b"date\turl\n\xff\xfe\xfa")
        self._write("good.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n")

        with self.assertLogs("history_catalog.workflows.ingest_pipeline", level="WARNING"):
            report = await self._orchestrator().run_ingest()

        self.assertEqual(report.files, 2)
        self.assertEqual(report.errors, 1)
        self.assertEqual(len(self.store.get_all()), 1)

    async def test_store_error_in_one_file_is_contained(self):
        store = _DeleteFailingStore()
        stale = {"id": event_id("1900-01-01", "https://x.org/old"), "date": "1900-01-01",
                 "url": "https://x.org/old", "sourceFile": "a.tsv"}
        store.bulk_upsert([event_from_record(stale)])
        self._write("a.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n")
        self._write("b.tsv", "date\turl\n1944-06-06\thttps://en.wikipedia.org/wiki/D-Day\n")

        with self.assertLogs("history_catalog.workflows.ingest_pipeline", level="ERROR"):
            report = await self._orchestrator(store).run_ingest()

        self.assertEqual(report.errors, 1)
        self.assertIsNotNone(store.get(event_id("1944-06-06", "https://en.wikipedia.org/wiki/D-Day")))

    async def test_missing_sources_dir_completes(self):
        self.sources.rmdir()
        report = await self._orchestrator().run_ingest()
        self.assertEqual(report.files, 0)
        self.assertEqual(report.lanes_assigned, 0)

    async def test_concurrent_callers_share_one_run(self):
        orchestrator = self._orchestrator()
        release = asyncio.Event()
        expected = IngestReport(files=3)

        async def slow_run():
            await release.wait()
            return expected

        orchestrator._run = AsyncMock(side_effect=slow_run)

        first = asyncio.ensure_future(orchestrator.run_ingest())
        second = asyncio.ensure_future(orchestrator.run_ingest())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        self.assertTrue(orchestrator.running)
        release.set()

        results = await asyncio.gather(first, second)
        self.assertIs(results[0], expected)
        self.assertIs(results[1], expected)
        self.assertEqual(orchestrator._run.await_count, 1)
        self.assertFalse(orchestrator.running)

        await orchestrator.run_ingest()
        self.assertEqual(orchestrator._run.await_count, 2)

    async def test_lane_write_back_failure_is_fatal(self):
        self._write("a.tsv", f"date\turl\n2020-03-15\t{EXAMPLE_URL}\n")
        orchestrator = self._orchestrator()

        with patch('history_catalog.workflows.ingest_pipeline.assign_lanes', side_effect=RuntimeError("lanes")):
            with self.assertLogs("history_catalog.workflows.ingest_pipeline", level="ERROR"):
                with self.assertRaises(RuntimeError):
                    await orchestrator.run_ingest()

        self.assertFalse(orchestrator.running)


if __name__ == '__main__':
    unittest.main()
