"""Tests for directory scanning and the watcher-invalidated listing cache."""

from __future__ import annotations

import os
import tempfile
import threading
import time
import unittest
from collections.abc import Callable
from pathlib import Path

from switchfile.listing import DirectoryListingCache, normalize_reference, scan_directory_files
from switchfile.runtime.scan_prefetch import DirectoryScanRequest, DirectoryScanResult, DirectoryScanScheduler
from switchfile.watch import ChangeKind, DirectoryChange, DirectoryWatcher


class FakeWatcher:
    def __init__(self, directory: Path, on_change: Callable[[DirectoryChange], None], log: list[str]) -> None:
        self.directory = directory
        self.on_change = on_change
        self.closed = False
        self.polls = 0
        self._log = log
        log.append(f"watch {directory.name}")

    def poll(self, force: bool = False) -> list[DirectoryChange]:
        self.polls += 1
        return []

    def close(self) -> None:
        self.closed = True
        self._log.append(f"close {self.directory.name}")


class ManualScheduler:
    """Scan scheduler whose results the test hands over explicitly."""

    def __init__(self) -> None:
        self.requests: list[DirectoryScanRequest] = []
        self.results: list[DirectoryScanResult] = []
        self.in_flight: list[DirectoryScanResult] = []
        self.waits = 0

    def schedule(self, directory: Path, generation: int) -> int:
        request = DirectoryScanRequest(len(self.requests) + 1, directory, generation)
        self.requests.append(request)
        return request.request_id

    def complete(self, request: DirectoryScanRequest, entries: tuple[Path, ...]) -> None:
        self.results.append(DirectoryScanResult(request=request, entries=entries, error=None))

    def finish_while_waiting(self, request: DirectoryScanRequest, entries: tuple[Path, ...]) -> None:
        """Deliver ``entries`` only to a caller blocked in ``wait_result``."""
        self.in_flight.append(DirectoryScanResult(request=request, entries=entries, error=None))

    def wait_result(self, timeout_seconds: float) -> DirectoryScanResult | None:
        self.waits += 1
        if not self.in_flight:
            return None
        return self.in_flight.pop(0)

    def drain_results(self) -> list[DirectoryScanResult]:
        out, self.results = self.results, []
        return out


class ScanDirectoryFilesTests(unittest.TestCase):
    def test_lists_only_regular_files_in_numeric_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            for name in ("a10.txt", "a2.txt", "a1.txt", ".hidden"):
                (root / name).write_text(name, encoding="utf-8")
            (root / "nested").mkdir()
            (root / "nested" / "inner.txt").write_text("x", encoding="utf-8")

            entries, error = scan_directory_files(root)

            self.assertIsNone(error)
            self.assertEqual([p.name for p in entries], [".hidden", "a1.txt", "a2.txt", "a10.txt"])
            self.assertTrue(all(p.parent == root for p in entries))

    def test_symlinks_are_excluded(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "real.txt").write_text("x", encoding="utf-8")
            try:
                os.symlink(root / "real.txt", root / "link.txt")
            except (OSError, NotImplementedError):
                self.skipTest("symlinks unavailable")

            entries, _error = scan_directory_files(root)

            self.assertEqual([p.name for p in entries], ["real.txt"])

    def test_missing_directory_returns_empty_with_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            entries, error = scan_directory_files(Path(tmp) / "missing")

        self.assertEqual(entries, ())
        self.assertIsInstance(error, OSError)


class DirectoryListingCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.dir_a = self.root / "A"
        self.dir_b = self.root / "B"
        for directory, names in ((self.dir_a, ("a1.txt", "a10.txt")), (self.dir_b, ("b1.txt", "b2.txt"))):
            directory.mkdir()
            for name in names:
                (directory / name).write_text(name, encoding="utf-8")

        self.log: list[str] = []
        self.watchers: list[FakeWatcher] = []
        self.scheduler = ManualScheduler()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _scan(self, directory: Path):
        self.log.append(f"scan {directory.name}")
        return scan_directory_files(directory)

    def _watch(self, directory: Path, on_change: Callable[[DirectoryChange], None]) -> FakeWatcher:
        watcher = FakeWatcher(directory, on_change, self.log)
        self.watchers.append(watcher)
        return watcher

    def _cache(self, **kwargs) -> DirectoryListingCache:
        return DirectoryListingCache(scan=self._scan, watcher_factory=self._watch, **kwargs)

    def _scans(self) -> int:
        return sum(1 for item in self.log if item.startswith("scan"))

    def test_same_scope_twice_reuses_listing_without_rescan(self) -> None:
        cache = self._cache()

        first = cache.set_scope(self.dir_a)
        second = cache.set_scope(self.dir_a)

        self.assertIs(first, second)
        self.assertEqual(self._scans(), 1)
        self.assertEqual([p.name for p in first], ["a1.txt", "a10.txt"])

    def test_created_file_event_rebuilds_sorted_listing(self) -> None:
        cache = self._cache()
        cache.set_scope(self.dir_a)

        created = self.dir_a / "a2.txt"
        created.write_text("x", encoding="utf-8")
        self.watchers[0].on_change(DirectoryChange(ChangeKind.CREATED, created))

        self.assertTrue(cache.stale)
        self.assertEqual([p.name for p in cache.entries], ["a1.txt", "a2.txt", "a10.txt"])
        self.assertFalse(cache.stale)
        self.assertEqual(self._scans(), 2)

    def test_scope_switch_closes_old_watcher_before_scanning_new_directory(self) -> None:
        cache = self._cache()
        cache.set_scope(self.dir_a)
        cache.set_scope(self.dir_b)

        self.assertEqual(self.log, ["scan A", "watch A", "close A", "scan B", "watch B"])
        self.assertTrue(self.watchers[0].closed)
        self.assertIs(cache.watcher, self.watchers[1])

    def test_change_in_previous_directory_does_not_touch_new_listing(self) -> None:
        cache = self._cache()
        cache.set_scope(self.dir_a)
        listing_b = cache.set_scope(self.dir_b)

        created = self.dir_a / "a3.txt"
        created.write_text("x", encoding="utf-8")
        self.watchers[0].on_change(DirectoryChange(ChangeKind.CREATED, created))

        self.assertFalse(cache.stale)
        self.assertIs(cache.entries, listing_b)
        self.assertEqual(self._scans(), 2)

    def test_nested_path_change_is_ignored(self) -> None:
        cache = self._cache()
        cache.set_scope(self.dir_a)

        cache.handle_change(DirectoryChange(ChangeKind.CREATED, self.dir_a / "sub" / "deep.txt"))

        self.assertFalse(cache.stale)

    def test_stale_background_scan_for_old_scope_is_discarded(self) -> None:
        cache = self._cache(prefetch=self.scheduler)
        cache.set_scope(self.dir_a)
        cache.invalidate()
        request = self.scheduler.requests[-1]
        listing_b = cache.set_scope(self.dir_b)

        self.scheduler.complete(request, (self.dir_a / "bogus.txt",))

        self.assertIs(cache.entries, listing_b)
        self.assertEqual(cache.directory, self.dir_b)

    def test_superseded_background_scan_is_discarded_and_latest_committed(self) -> None:
        cache = self._cache(prefetch=self.scheduler)
        cache.set_scope(self.dir_a)
        cache.invalidate()
        cache.invalidate()
        older, newer = self.scheduler.requests
        scans_before = self._scans()

        self.scheduler.complete(older, (self.dir_a / "old.txt",))
        self.scheduler.complete(newer, (self.dir_a / "new.txt",))

        self.assertEqual(cache.entries, (self.dir_a / "new.txt",))
        self.assertEqual(self._scans(), scans_before)

    def test_read_waits_for_in_flight_background_scan_instead_of_rescanning(self) -> None:
        cache = self._cache(prefetch=self.scheduler)
        cache.set_scope(self.dir_a)
        cache.invalidate()
        scans_before = self._scans()
        self.scheduler.finish_while_waiting(self.scheduler.requests[-1], (self.dir_a / "fresh.txt",))

        self.assertEqual(cache.entries, (self.dir_a / "fresh.txt",))
        self.assertEqual(self._scans(), scans_before)
        self.assertEqual(self.scheduler.waits, 1)

    def test_wait_skips_superseded_results_until_current_generation_lands(self) -> None:
        cache = self._cache(prefetch=self.scheduler)
        cache.set_scope(self.dir_a)
        cache.invalidate()
        cache.invalidate()
        older, newer = self.scheduler.requests
        self.scheduler.finish_while_waiting(older, (self.dir_a / "old.txt",))
        self.scheduler.finish_while_waiting(newer, (self.dir_a / "new.txt",))

        self.assertEqual(cache.entries, (self.dir_a / "new.txt",))
        self.assertEqual(self.scheduler.waits, 2)

    def test_read_falls_back_to_sync_scan_when_background_scan_never_lands(self) -> None:
        cache = self._cache(prefetch=self.scheduler, prefetch_wait_seconds=0.01)
        cache.set_scope(self.dir_a)
        cache.invalidate()

        with self.assertLogs("switchfile.listing", level="WARNING"):
            rebuilt = cache.entries

        self.assertEqual([p.name for p in rebuilt], ["a1.txt", "a10.txt"])

        self.scheduler.complete(self.scheduler.requests[-1], (self.dir_a / "late.txt",))

        self.assertIs(cache.entries, rebuilt)

    def test_unreadable_directory_yields_empty_listing(self) -> None:
        cache = self._cache()

        with self.assertLogs("switchfile.listing", level="WARNING"):
            entries = cache.set_scope(self.root / "missing")

        self.assertEqual(entries, ())
        self.assertIsNotNone(cache.listing.error)

    def test_scan_exceptions_are_contained(self) -> None:
        def broken_scan(_directory: Path):
            raise RuntimeError("disk on fire")

        cache = DirectoryListingCache(scan=broken_scan, watcher_factory=self._watch)

        with self.assertLogs("switchfile.listing", level="ERROR"):
            entries = cache.set_scope(self.dir_a)

        self.assertEqual(entries, ())

    def test_watcher_factory_failure_still_serves_listing(self) -> None:
        def no_watch(_directory: Path, _on_change: Callable[[DirectoryChange], None]):
            raise OSError("too many watches")

        cache = DirectoryListingCache(scan=self._scan, watcher_factory=no_watch)

        with self.assertLogs("switchfile.listing", level="ERROR"):
            entries = cache.set_scope(self.dir_a)

        self.assertEqual([p.name for p in entries], ["a1.txt", "a10.txt"])
        self.assertIsNone(cache.watcher)

    def test_dispose_releases_watcher_and_allows_rescoping(self) -> None:
        cache = self._cache()
        cache.set_scope(self.dir_a)

        cache.dispose()

        self.assertTrue(self.watchers[0].closed)
        self.assertIsNone(cache.directory)
        self.assertIsNone(cache.watcher)
        self.assertEqual(cache.entries, ())

        cache.set_scope(self.dir_a)
        self.assertEqual(len(self.watchers), 2)
        self.assertFalse(self.watchers[1].closed)

    def test_poll_drives_real_watcher_invalidation(self) -> None:
        cache = DirectoryListingCache(poll_seconds=60.0, monotonic=lambda: 0.0)
        cache.set_scope(self.dir_a)
        self.assertIsInstance(cache.watcher, DirectoryWatcher)

        (self.dir_a / "a5.txt").write_text("x", encoding="utf-8")
        cache.poll()
        self.assertFalse(cache.stale)
        cache.poll(force=True)

        self.assertTrue(cache.stale)
        self.assertEqual([p.name for p in cache.entries], ["a1.txt", "a5.txt", "a10.txt"])

    def test_normalize_reference_resolves_parent_only(self) -> None:
        relative = Path(os.path.relpath(self.dir_a / "a1.txt"))
        self.assertEqual(normalize_reference(relative), self.dir_a / "a1.txt")


class BackgroundRescanConcurrencyTests(unittest.TestCase):
    def test_one_invalidation_plus_read_scans_once_and_never_overlaps(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a.txt").write_text("a", encoding="utf-8")
            lock = threading.Lock()
            active = 0
            peak = 0
            scans = 0

            def slow_scan(directory: Path):
                nonlocal active, peak, scans
                with lock:
                    active += 1
                    scans += 1
                    peak = max(peak, active)
                try:
                    time.sleep(0.2)
                    return scan_directory_files(directory)
                finally:
                    with lock:
                        active -= 1

            cache = DirectoryListingCache(
                scan=slow_scan,
                prefetch=DirectoryScanScheduler(slow_scan),
                poll_seconds=60.0,
            )
            self.addCleanup(cache.dispose)
            cache.set_scope(root)
            scans_after_scope = scans

            (root / "b.txt").write_text("b", encoding="utf-8")
            cache.invalidate()
            entries = cache.entries

            self.assertEqual(scans - scans_after_scope, 1)
            self.assertEqual(peak, 1)
            self.assertEqual([p.name for p in entries], ["a.txt", "b.txt"])
            self.assertFalse(cache.stale)


if __name__ == "__main__":
    unittest.main()
