"""Background rescan worker for invalidated directory listings."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue

logger = logging.getLogger(__name__)

ScanOutcome = tuple[tuple[Path, ...], Exception | None]


@dataclass(frozen=True)
class DirectoryScanRequest:
    """One directory rescan job tagged with the cache generation it serves."""

    request_id: int
    directory: Path
    generation: int


@dataclass(frozen=True)
class DirectoryScanResult:
    """Completed scan payload from the background worker."""

    request: DirectoryScanRequest
    entries: tuple[Path, ...]
    error: Exception | None


class DirectoryScanScheduler:
    """Single-threaded latest-request-wins scan scheduler.

    Results are queued for the owner to drain on its own thread; the worker
    never touches cache state. A failing scan still posts a result carrying
    its error so an owner waiting on the request is never left hanging.
    """

    def __init__(self, scan: Callable[[Path], ScanOutcome]) -> None:
        self._scan = scan
        self._lock = threading.Lock()
        self._pending: DirectoryScanRequest | None = None
        self._running = False
        self._next_request_id = 1
        self._results: Queue[DirectoryScanResult] = Queue()

    def _worker(self) -> None:
        while True:
            with self._lock:
                request = self._pending
                self._pending = None
                if request is None:
                    self._running = False
                    return

            try:
                entries, error = self._scan(request.directory)
            except Exception as exc:
                logger.exception("background scan of %s failed", request.directory)
                entries, error = (), exc
            self._results.put(DirectoryScanResult(request=request, entries=entries, error=error))

    def schedule(self, directory: Path, generation: int) -> int:
        """Queue/replace pending scan work and return its request id."""
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending = DirectoryScanRequest(
                request_id=request_id,
                directory=directory,
                generation=generation,
            )
            if self._running:
                return request_id
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name="switchfile-dir-scan",
            daemon=True,
        )
        worker.start()
        return request_id

    def wait_result(self, timeout_seconds: float) -> DirectoryScanResult | None:
        """Block for the next completed result, or ``None`` after the timeout."""
        try:
            return self._results.get(timeout=timeout_seconds)
        except Empty:
            return None

    def drain_results(self) -> list[DirectoryScanResult]:
        """Drain all completed scan results."""
        out: list[DirectoryScanResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out


__all__ = [
    "DirectoryScanRequest",
    "DirectoryScanResult",
    "DirectoryScanScheduler",
]
