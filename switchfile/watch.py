"""Poll-based, non-recursive change watching for one directory.

Each poll takes a stat snapshot of the directory's direct children and diffs
it against the previous one. Nested paths are never inspected.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 0.5

ChildSignature = tuple[str, int, int]


class ChangeKind(str, Enum):
    CREATED = "created"
    DELETED = "deleted"
    MODIFIED = "modified"


@dataclass(frozen=True)
class DirectoryChange:
    """One filesystem change directly inside a watched directory."""

    kind: ChangeKind
    path: Path


def _child_kind(entry: os.DirEntry) -> str:
    try:
        if entry.is_symlink():
            return "link"
        if entry.is_dir(follow_symlinks=False):
            return "dir"
        if entry.is_file(follow_symlinks=False):
            return "file"
    except OSError:
        return "error"
    return "other"


def snapshot_directory(directory: Path) -> dict[str, ChildSignature]:
    """Return ``name -> (kind, mtime_ns, size)`` for direct children.

    A missing or unreadable directory yields an empty snapshot.
    """
    children: dict[str, ChildSignature] = {}
    try:
        with os.scandir(directory) as entries:
            for child in entries:
                kind = _child_kind(child)
                if kind == "dir":
                    # Nested changes bump a subdirectory's mtime; ignore them.
                    children[child.name] = (kind, 0, 0)
                    continue
                try:
                    st = child.stat(follow_symlinks=False)
                    children[child.name] = (kind, st.st_mtime_ns, st.st_size)
                except OSError:
                    children[child.name] = (kind, 0, 0)
    except OSError as exc:
        logger.debug("snapshot of %s failed: %s", directory, exc)
        return {}
    return children


def diff_snapshots(
    directory: Path,
    before: dict[str, ChildSignature],
    after: dict[str, ChildSignature],
) -> list[DirectoryChange]:
    """Describe how ``after`` differs from ``before`` as change events."""
    changes: list[DirectoryChange] = []
    for name in sorted(before.keys() - after.keys()):
        changes.append(DirectoryChange(ChangeKind.DELETED, directory / name))
    for name in sorted(after.keys() - before.keys()):
        changes.append(DirectoryChange(ChangeKind.CREATED, directory / name))
    for name in sorted(before.keys() & after.keys()):
        if before[name] != after[name]:
            changes.append(DirectoryChange(ChangeKind.MODIFIED, directory / name))
    return changes


class DirectoryWatcher:
    """Watch one directory's immediate contents by polling stat snapshots."""

    def __init__(
        self,
        directory: Path,
        on_change: Callable[[DirectoryChange], None],
        *,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = directory
        self._on_change = on_change
        self.poll_seconds = poll_seconds
        self._monotonic = monotonic
        self._snapshot = snapshot_directory(directory)
        self._last_poll = monotonic()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def poll(self, force: bool = False) -> list[DirectoryChange]:
        """Re-snapshot when due (or ``force``) and dispatch any changes."""
        if self._closed:
            return []
        now = self._monotonic()
        if not force and (now - self._last_poll) < self.poll_seconds:
            return []
        self._last_poll = now

        snapshot = snapshot_directory(self.directory)
        changes = diff_snapshots(self.directory, self._snapshot, snapshot)
        self._snapshot = snapshot
        for change in changes:
            # A callback may close this watcher mid-batch.
            if self._closed:
                break
            try:
                self._on_change(change)
            except Exception:
                logger.exception("change callback failed for %s", change.path)
        return changes

    def close(self) -> None:
        self._closed = True
        self._snapshot = {}


__all__ = [
    "ChangeKind",
    "DEFAULT_POLL_SECONDS",
    "DirectoryChange",
    "DirectoryWatcher",
    "diff_snapshots",
    "snapshot_directory",
]
