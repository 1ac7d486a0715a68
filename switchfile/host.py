"""Collaborator interfaces between the navigation core and its host.

The host decides what "the current file" is and how a file gets opened. The
core only sees these two small protocols.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol


class ActiveFileSource(Protocol):
    def get_active_file_path(self) -> Path | None:
        """Return the file the user is looking at, if any."""
        ...


class FileOpener(Protocol):
    def open_path(self, path: Path) -> None:
        """Show ``path`` to the user."""
        ...


class FallbackActiveFile:
    """Ask several host lookups in order and return the first path found.

    Typical chain: the focused text document, then the active tab (which may
    hold a non-text file such as an image preview).
    """

    def __init__(self, *lookups: Callable[[], Path | None]) -> None:
        self._lookups = lookups

    def get_active_file_path(self) -> Path | None:
        for lookup in self._lookups:
            path = lookup()
            if path is not None:
                return path
        return None


class CurrentFile:
    """Minimal host for front ends that track one current path themselves.

    Opening a path makes it the active file; ``on_open`` lets the front end
    display it.
    """

    def __init__(
        self,
        path: Path | None = None,
        on_open: Callable[[Path], None] | None = None,
    ) -> None:
        self.path = path
        self._on_open = on_open

    def get_active_file_path(self) -> Path | None:
        return self.path

    def open_path(self, path: Path) -> None:
        self.path = path
        if self._on_open is not None:
            self._on_open(path)


__all__ = ["ActiveFileSource", "CurrentFile", "FallbackActiveFile", "FileOpener"]
