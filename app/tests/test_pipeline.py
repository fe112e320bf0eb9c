from __future__ import annotations

import asyncio
import json
import logging
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from uci_imax_watch.config import DEFAULT_NOTIFY_TEXT, Config
from uci_imax_watch.errors import (
    ExtractionMiss,
    FetchError,
    InterpreterMissingBinding,
    InterpreterSyntaxError,
    NormalizationShapeError,
    StorageError,
)
from uci_imax_watch.extractor import DEFAULT_END_MARKER, DEFAULT_START_MARKER
from uci_imax_watch.models import BlobInfo, NotifyResult
from uci_imax_watch.pipeline import parse_schedule, run_watch_job
from uci_imax_watch.storage import BlobStore

T0 = datetime(2026, 10, 19, 14, 0, 0, tzinfo=timezone.utc)

PAGE = """<html><head><script src="/static/moment.js"></script></head><body>
<div id="schedule"></div>
<script>
moment.locale('it')
var times = ['18:00', '21:30'];
var movies = {dune: {title: 'Dune'}};
var days = %s;
function gotToBuyPage(pid) { window.location = '/buy/' + pid; }
</script></body></html>"""


def _page(*titles: str) -> str:
    days = {
        "Milano_Bicocca-1": [
            {
                "date": "2026-10-19",
                "events": [{"movieTitle": t, "times": [{"time": "18:00"}]} for t in titles],
            }
        ]
    }
    return PAGE % json.dumps(days)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class MemoryBlobStore(BlobStore):
    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self.objects: dict[str, tuple[bytes, datetime]] = {}
        self.fail_put = False

    def put(self, key: str, data: bytes) -> None:
        if self.fail_put:
            raise StorageError("put failed")
        self.objects[key] = (data, self.clock())

    def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise StorageError(f"missing {key}")
        return self.objects[key][0]

    def list(self, prefix: str) -> list[BlobInfo]:
        items = [BlobInfo(k, ts) for k, (_, ts) in self.objects.items() if k.startswith(prefix)]
        return sorted(items, key=lambda b: b.last_modified, reverse=True)

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))


class FakeFetcher:
    def __init__(self, html: str) -> None:
        self.html = html
        self.urls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.urls.append(url)
        if isinstance(self.html, Exception):
            raise self.html
        return self.html


class FakeNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.messages: list[str] = []

    def send(self, text: str) -> NotifyResult:
        self.messages.append(text)
        if self.error is not None:
            raise self.error
        return NotifyResult(delivered=True)


def make_config(out_dir: Path, **overrides) -> Config:
    values = dict(
        page_url="https://imax.ucicinemas.it/",
        start_marker=DEFAULT_START_MARKER,
        end_marker=DEFAULT_END_MARKER,
        user_agent="test",
        fetch_timeout_ms=1000,
        out_dir=out_dir,
        storage_backend="local",
        storage_dir=out_dir / "blobs",
        redis_url=None,
        snapshot_prefix="scraped-data",
        diff_prefix="differences-data",
        retention_seconds=3600,
        telegram_bot_token=None,
        telegram_chat_id=None,
        telegram_timeout_seconds=1.0,
        notify_text=DEFAULT_NOTIFY_TEXT,
        run_interval_seconds=0,
    )
    values.update(overrides)
    return Config(**values)


class ParseScheduleTests(unittest.TestCase):
    def test_page_to_showings(self) -> None:
        showings = parse_schedule(_page("Dune", "Tenet"), DEFAULT_START_MARKER, DEFAULT_END_MARKER)
        self.assertEqual([s.movie_title for s in showings], ["Dune", "Tenet"])
        self.assertEqual({s.cinema_name for s in showings}, {"Milano Bicocca"})

    def test_error_kinds(self) -> None:
        cases = [
            ("<html><script>var days = {};</script></html>", ExtractionMiss),
            (PAGE.replace("var days = %s;", "var days = load();"), InterpreterSyntaxError),
            (PAGE.replace("var days = %s;", ""), InterpreterMissingBinding),
            (PAGE % "[]", NormalizationShapeError),
        ]
        for html, error in cases:
            with self.subTest(error=error.__name__):
                with self.assertRaises(error):
                    parse_schedule(html, DEFAULT_START_MARKER, DEFAULT_END_MARKER)


class RunWatchJobTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.cfg = make_config(Path(self._tmp.name))
        self.clock = Clock(T0)
        self.store = MemoryBlobStore(self.clock)
        self.notifier = FakeNotifier()
        self.logger = logging.getLogger("test_pipeline")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, html, **kwargs):
        return asyncio.run(
            run_watch_job(
                self.cfg,
                self.logger,
                self.store,
                FakeFetcher(html),
                kwargs.pop("notifier", self.notifier),
                clock=self.clock,
                **kwargs,
            )
        )

    def test_first_run_only_writes_snapshot(self) -> None:
        result = self._run(_page("Dune"))
        self.assertEqual(result.showings_found, 1)
        self.assertEqual(self.store.keys("scraped-data"), [result.snapshot_key])
        self.assertFalse(result.compared)
        self.assertEqual(self.store.keys("differences-data"), [])
        self.assertEqual(self.notifier.messages, [])

    def test_change_writes_diff_and_notifies(self) -> None:
        self._run(_page("Dune", "Tenet"))
        self.clock.tick(minutes=10)
        result = self._run(_page("Dune", "Oppenheimer"))

        self.assertTrue(result.compared)
        self.assertEqual((result.added, result.removed), (1, 1))
        self.assertTrue(result.notified)
        self.assertEqual(self.store.keys("differences-data"), [result.diff_key])
        payload = json.loads(self.store.get(result.diff_key))
        self.assertEqual([sorted(p) for p in payload], [["count", "removed", "value"], ["added", "count", "value"]])
        self.assertEqual(payload[0]["value"][0]["movieTitle"], "Tenet")
        self.assertEqual(payload[1]["value"][0]["movieTitle"], "Oppenheimer")
        self.assertEqual(len(self.notifier.messages), 1)
        self.assertIn("https://imax.ucicinemas.it/", self.notifier.messages[0])

    def test_unchanged_programme_is_quiet(self) -> None:
        self._run(_page("Dune"))
        self.clock.tick(minutes=10)
        result = self._run(_page("Dune").replace('"18:00"', '"22:00"'))
        self.assertTrue(result.compared)
        self.assertEqual((result.added, result.removed), (0, 0))
        self.assertEqual(result.diff_key, "")
        self.assertEqual(self.notifier.messages, [])
        self.assertEqual(len(self.store.keys("scraped-data")), 2)

    def test_failed_parse_writes_nothing(self) -> None:
        self._run(_page("Dune"))
        before = dict(self.store.objects)
        for html, error in (
            ("<html><body>maintenance</body></html>", ExtractionMiss),
            (PAGE.replace("var days = %s;", "var days = build(times);"), InterpreterSyntaxError),
            (FetchError("timeout"), FetchError),
        ):
            with self.subTest(error=error.__name__):
                with self.assertRaises(error):
                    self._run(html)
                self.assertEqual(self.store.objects, before)
        self.assertEqual(self.notifier.messages, [])

    def test_snapshot_write_failure_aborts_before_diff(self) -> None:
        self.store.fail_put = True
        with self.assertRaises(StorageError):
            self._run(_page("Dune"))
        self.assertEqual(self.store.objects, {})
        self.assertEqual(self.notifier.messages, [])

    def test_notifier_failure_keeps_artifacts(self) -> None:
        notifier = FakeNotifier(error=RuntimeError("telegram down"))
        self._run(_page("Dune"))
        self.clock.tick(minutes=10)
        result = self._run(_page("Dune", "Tenet"), notifier=notifier)
        self.assertFalse(result.notified)
        self.assertEqual(len(notifier.messages), 1)
        self.assertEqual(self.store.keys("differences-data"), [result.diff_key])
        self.assertEqual(len(self.store.keys("scraped-data")), 2)

    def test_injected_selection(self) -> None:
        seen = []

        def pick_oldest_two(listing):
            seen.append(len(listing))
            ordered = sorted(listing, key=lambda b: b.key)
            return (ordered[1], ordered[0]) if len(ordered) >= 2 else None

        self._run(_page("Dune"))
        self.clock.tick(minutes=1)
        self._run(_page("Dune", "Tenet"))
        self.clock.tick(minutes=1)
        result = self._run(_page("Dune", "Tenet"), select=pick_oldest_two)
        self.assertEqual(seen, [3])
        self.assertEqual((result.added, result.removed), (1, 0))

    def test_retention_sweeps_both_prefixes(self) -> None:
        self._run(_page("Dune"))
        self.clock.tick(minutes=10)
        self._run(_page("Tenet"))
        self.assertEqual(len(self.store.keys("differences-data")), 1)

        self.clock.tick(hours=2)
        result = self._run(_page("Tenet"))
        self.assertEqual(result.deleted, 3)
        self.assertEqual(self.store.keys("scraped-data"), [result.snapshot_key])
        self.assertEqual(self.store.keys("differences-data"), [])


if __name__ == "__main__":
    unittest.main()
