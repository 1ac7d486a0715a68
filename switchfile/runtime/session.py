"""Application wiring for sibling navigation.

``NavigationSession`` owns the listing cache and the debounced reactions to
host tab changes. Front ends call ``navigate`` and drive ``poll`` from their
event loop; nothing here raises into the host for I/O problems.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..debounce import Debouncer
from ..host import ActiveFileSource, FileOpener
from ..listing import DirectoryListingCache, normalize_reference, scan_directory_files
from ..siblings import Direction, NavigationRequest, SiblingResult, resolve_siblings
from .config import SessionConfig
from .scan_prefetch import DirectoryScanScheduler

logger = logging.getLogger(__name__)


class NavigationStatus(str, Enum):
    OPENED = "opened"
    NO_SIBLING = "no-sibling"
    NO_ACTIVE_FILE = "no-active-file"
    OPEN_FAILED = "open-failed"


@dataclass(frozen=True)
class NavigationOutcome:
    """What a navigation request did."""

    status: NavigationStatus
    target: Path | None = None
    reference: Path | None = None

    @property
    def opened(self) -> bool:
        return self.status is NavigationStatus.OPENED


@dataclass
class NavigationButtons:
    """Visibility state of the previous/next buttons a front end may draw."""

    enabled: bool = True
    visible: bool = False

    def update(self, has_active_file: bool) -> bool:
        """Recompute visibility; return whether it changed."""
        visible = self.enabled and has_active_file
        if visible == self.visible:
            return False
        self.visible = visible
        return True


class NavigationSession:
    """Resolve and open sibling files for whatever the host has active."""

    def __init__(
        self,
        active_file: ActiveFileSource,
        opener: FileOpener,
        *,
        cache: DirectoryListingCache | None = None,
        config: SessionConfig | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config if config is not None else SessionConfig()
        self.active_file = active_file
        self.opener = opener
        if cache is None:
            cache = DirectoryListingCache(
                prefetch=DirectoryScanScheduler(scan_directory_files),
                poll_seconds=self.config.watch_poll_seconds,
                monotonic=monotonic,
            )
        self.cache = cache
        self.buttons = NavigationButtons(enabled=self.config.status_bar)
        self._teardown_check = Debouncer(
            self._release_if_inactive,
            self.config.tab_debounce_seconds,
            monotonic=monotonic,
        )
        self._buttons_check = Debouncer(
            self._refresh_buttons,
            self.config.tab_debounce_seconds,
            monotonic=monotonic,
        )
        self._refresh_buttons()

    def siblings(self, reference: Path) -> SiblingResult:
        """Neighbours of ``reference`` in its directory's current listing."""
        reference = normalize_reference(reference)
        entries = self.cache.set_scope(reference.parent)
        return resolve_siblings(entries, reference)

    def position(self, reference: Path) -> tuple[int, int] | None:
        """1-based ``(index, count)`` of ``reference`` in its listing, if listed."""
        reference = normalize_reference(reference)
        entries = self.cache.set_scope(reference.parent)
        try:
            return entries.index(reference) + 1, len(entries)
        except ValueError:
            return None

    def navigate(self, direction: Direction, reference: Path | None = None) -> NavigationOutcome:
        """Open the sibling of ``reference`` (default: the active file)."""
        if reference is None:
            reference = self._active_path()
        if reference is None:
            return NavigationOutcome(NavigationStatus.NO_ACTIVE_FILE)

        reference = normalize_reference(reference)
        target = self.siblings(reference).target(direction)
        if target is None:
            return NavigationOutcome(NavigationStatus.NO_SIBLING, reference=reference)

        try:
            self.opener.open_path(target)
        except Exception:
            logger.exception("opening %s failed", target)
            return NavigationOutcome(NavigationStatus.OPEN_FAILED, target=target, reference=reference)
        return NavigationOutcome(NavigationStatus.OPENED, target=target, reference=reference)

    def handle(self, request: NavigationRequest) -> NavigationOutcome:
        return self.navigate(request.direction, request.reference_path)

    def next(self, reference: Path | None = None) -> NavigationOutcome:
        return self.navigate(Direction.NEXT, reference)

    def previous(self, reference: Path | None = None) -> NavigationOutcome:
        return self.navigate(Direction.PREVIOUS, reference)

    def on_active_tab_changed(self) -> None:
        """Coalesce a burst of tab changes into one check after a quiet period."""
        self._teardown_check.trigger()
        if self.buttons.enabled:
            self._buttons_check.trigger()
        else:
            self._buttons_check.cancel()

    def set_buttons_enabled(self, enabled: bool) -> None:
        """Apply a changed button toggle immediately."""
        self.buttons.enabled = enabled
        self._refresh_buttons()

    def poll(self, force: bool = False) -> None:
        """Run due debounced checks, watcher polling, and background results."""
        self._teardown_check.poll()
        self._buttons_check.poll()
        self.cache.poll(force=force)

    def dispose(self) -> None:
        self._teardown_check.cancel()
        self._buttons_check.cancel()
        self.cache.dispose()

    def _active_path(self) -> Path | None:
        try:
            return self.active_file.get_active_file_path()
        except Exception:
            logger.exception("active file lookup failed")
            return None

    def _has_active_file(self) -> bool:
        return self._active_path() is not None

    def _release_if_inactive(self) -> None:
        if not self._has_active_file():
            self.cache.dispose()

    def _refresh_buttons(self) -> None:
        self.buttons.update(self._has_active_file())


__all__ = [
    "NavigationButtons",
    "NavigationOutcome",
    "NavigationSession",
    "NavigationStatus",
]
