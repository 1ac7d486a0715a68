"""Directory scanning and the cached listing of the active file's directory.

``DirectoryListingCache`` is the only component that touches the filesystem.
It owns at most one watcher, bound to the directory currently in scope.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .ordering import sort_paths
from .runtime.scan_prefetch import DirectoryScanScheduler, ScanOutcome
from .watch import DEFAULT_POLL_SECONDS, DirectoryChange, DirectoryWatcher

logger = logging.getLogger(__name__)

WatcherFactory = Callable[[Path, Callable[[DirectoryChange], None]], DirectoryWatcher]


def normalize_directory(directory: Path) -> Path:
    """Return an absolute, symlink-resolved form of ``directory``."""
    try:
        return directory.resolve()
    except Exception:
        return directory.absolute()


def normalize_reference(path: Path) -> Path:
    """Absolute path of ``path`` with only its parent directory resolved.

    The file name itself is kept so a symlinked reference still matches its
    own entry in the parent's listing.
    """
    return normalize_directory(path.parent) / path.name


def scan_directory_files(directory: Path) -> ScanOutcome:
    """List regular files directly inside ``directory`` in navigation order.

    Subdirectories, symlinks and special files are skipped. Returns
    ``(entries, scan_error)``; ``scan_error`` is set and ``entries`` is empty
    when the directory cannot be scanned.
    """
    files: list[Path] = []
    try:
        with os.scandir(directory) as entries:
            for child in entries:
                try:
                    is_file = child.is_file(follow_symlinks=False)
                except OSError:
                    is_file = False
                if is_file:
                    files.append(directory / child.name)
    except OSError as exc:
        return (), exc
    return sort_paths(files), None


@dataclass(frozen=True)
class DirectoryListing:
    """Sorted regular files of one directory as of one scan."""

    directory: Path | None
    entries: tuple[Path, ...] = ()
    generation: int = 0
    error: Exception | None = None


EMPTY_LISTING = DirectoryListing(directory=None)

PREFETCH_WAIT_SECONDS = 5.0


class DirectoryListingCache:
    """Lazily built, watcher-invalidated listing for the directory in scope.

    Every scope switch and invalidation bumps ``generation``; a scan result is
    committed only if it was started for the current directory and
    generation, so a slow scan can never overwrite a newer listing.

    With a prefetch scheduler attached, a read that finds a background rescan
    in flight for the current generation waits for it instead of scanning the
    same directory a second time.
    """

    def __init__(
        self,
        *,
        scan: Callable[[Path], ScanOutcome] = scan_directory_files,
        watcher_factory: WatcherFactory | None = None,
        prefetch: DirectoryScanScheduler | None = None,
        prefetch_wait_seconds: float = PREFETCH_WAIT_SECONDS,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._scan = scan
        self._watcher_factory = watcher_factory
        self._prefetch = prefetch
        self._prefetch_wait_seconds = prefetch_wait_seconds
        self._poll_seconds = poll_seconds
        self._monotonic = monotonic
        self._directory: Path | None = None
        self._listing = EMPTY_LISTING
        self._watcher: DirectoryWatcher | None = None
        self._generation = 0
        self._stale = False
        self._prefetch_generation: int | None = None

    @property
    def directory(self) -> Path | None:
        return self._directory

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def watcher(self) -> DirectoryWatcher | None:
        return self._watcher

    @property
    def listing(self) -> DirectoryListing:
        """Current listing, rebuilt first if an invalidation is outstanding."""
        self._drain_prefetch()
        if self._stale and self._prefetch_generation == self._generation:
            self._await_prefetch()
        if self._stale:
            self._rebuild()
        return self._listing

    @property
    def entries(self) -> tuple[Path, ...]:
        return self.listing.entries

    def set_scope(self, directory: Path) -> tuple[Path, ...]:
        """Point the cache at ``directory`` and return its sorted files.

        Re-scoping to the directory already in scope reuses the cached
        listing. Switching directories closes the old watcher before the new
        directory is scanned and watched.
        """
        directory = normalize_directory(directory)
        if directory == self._directory:
            return self.entries

        self._release_watcher()
        self._generation += 1
        self._directory = directory
        self._listing = DirectoryListing(directory=directory, generation=self._generation)
        self._stale = True
        self._prefetch_generation = None
        logger.debug("scope -> %s", directory)
        self._rebuild()
        self._watcher = self._bind_watcher(directory)
        return self._listing.entries

    def invalidate(self) -> None:
        """Mark the listing stale; it is rebuilt on the next read."""
        if self._directory is None:
            return
        self._generation += 1
        self._stale = True
        if self._prefetch is not None:
            self._prefetch.schedule(self._directory, self._generation)
            self._prefetch_generation = self._generation

    def handle_change(self, change: DirectoryChange) -> None:
        """Invalidate for a change directly inside the scoped directory."""
        if self._directory is None or change.path.parent != self._directory:
            logger.debug("ignoring %s outside scope: %s", change.kind.value, change.path)
            return
        logger.debug("%s: %s", change.kind.value, change.path)
        self.invalidate()

    def poll(self, force: bool = False) -> None:
        """Let the watcher check for changes and commit finished rescans."""
        if self._watcher is not None:
            self._watcher.poll(force=force)
        self._drain_prefetch()

    def dispose(self) -> None:
        """Drop scope, listing and watcher. The cache can be re-scoped later."""
        self._release_watcher()
        if self._directory is not None:
            logger.debug("released scope %s", self._directory)
        self._generation += 1
        self._directory = None
        self._listing = EMPTY_LISTING
        self._stale = False
        self._prefetch_generation = None

    def _rebuild(self) -> None:
        directory = self._directory
        generation = self._generation
        if directory is None:
            self._stale = False
            return
        try:
            entries, error = self._scan(directory)
        except Exception as exc:
            logger.exception("scan of %s raised", directory)
            entries, error = (), exc
        self._commit(directory, generation, entries, error)

    def _commit(
        self,
        directory: Path,
        generation: int,
        entries: tuple[Path, ...],
        error: Exception | None,
    ) -> bool:
        if directory != self._directory or generation != self._generation:
            logger.debug("discarding stale scan of %s (generation %d)", directory, generation)
            return False
        if not self._stale and self._listing.generation == generation:
            return False
        if error is not None:
            logger.warning("cannot list %s: %s", directory, error)
        self._listing = DirectoryListing(
            directory=directory,
            entries=entries,
            generation=generation,
            error=error,
        )
        self._stale = False
        if self._prefetch_generation == generation:
            self._prefetch_generation = None
        return True

    def _drain_prefetch(self) -> None:
        if self._prefetch is None:
            return
        for result in self._prefetch.drain_results():
            self._commit(
                result.request.directory,
                result.request.generation,
                result.entries,
                result.error,
            )

    def _await_prefetch(self) -> None:
        """Commit the in-flight rescan for the current generation, if it lands in time.

        Results for superseded generations are discarded on the way. On
        timeout the caller falls back to a synchronous scan.
        """
        if self._prefetch is None:
            return
        deadline = time.monotonic() + self._prefetch_wait_seconds
        while self._stale and self._prefetch_generation == self._generation:
            remaining = deadline - time.monotonic()
            result = self._prefetch.wait_result(remaining) if remaining > 0 else None
            if result is None:
                logger.warning("background scan of %s did not finish; rescanning", self._directory)
                self._prefetch_generation = None
                return
            self._commit(
                result.request.directory,
                result.request.generation,
                result.entries,
                result.error,
            )

    def _bind_watcher(self, directory: Path) -> DirectoryWatcher | None:
        try:
            if self._watcher_factory is not None:
                return self._watcher_factory(directory, self.handle_change)
            return DirectoryWatcher(
                directory,
                self.handle_change,
                poll_seconds=self._poll_seconds,
                monotonic=self._monotonic,
            )
        except Exception:
            logger.exception("cannot watch %s", directory)
            return None

    def _release_watcher(self) -> None:
        watcher = self._watcher
        self._watcher = None
        if watcher is None:
            return
        try:
            watcher.close()
        except Exception:
            logger.exception("closing watcher for %s failed", watcher.directory)


__all__ = [
    "DirectoryListing",
    "DirectoryListingCache",
    "EMPTY_LISTING",
    "PREFETCH_WAIT_SECONDS",
    "WatcherFactory",
    "normalize_directory",
    "normalize_reference",
    "scan_directory_files",
]
