"""Sibling resolution: previous/next file around a reference, with wraparound.

This module has no I/O. Callers pass an already-sorted listing.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Direction(str, Enum):
    """Navigation direction requested by the user."""

    NEXT = "next"
    PREVIOUS = "previous"


@dataclass(frozen=True)
class NavigationRequest:
    """One navigation request from the host."""

    reference_path: Path
    direction: Direction


@dataclass(frozen=True)
class SiblingResult:
    """Neighbours of a reference file in listing order."""

    previous: Path | None = None
    next: Path | None = None

    @property
    def has_siblings(self) -> bool:
        return self.previous is not None or self.next is not None

    def target(self, direction: Direction) -> Path | None:
        """Return the neighbour in ``direction``."""
        if direction is Direction.NEXT:
            return self.next
        return self.previous


NO_SIBLINGS = SiblingResult()


def resolve_siblings(entries: Sequence[Path], reference_path: Path) -> SiblingResult:
    """Compute previous/next neighbours of ``reference_path`` in ``entries``.

    ``entries`` must already be sorted. The sequence is treated as circular:
    next from the last entry is the first and previous from the first is the
    last. With two entries the other file is both neighbours. A reference that
    is not present (for example a file deleted since the last scan) has no
    siblings.
    """
    try:
        index = list(entries).index(reference_path)
    except ValueError:
        return NO_SIBLINGS

    count = len(entries)
    if count < 2:
        return NO_SIBLINGS
    return SiblingResult(
        previous=entries[(index - 1) % count],
        next=entries[(index + 1) % count],
    )


__all__ = [
    "Direction",
    "NavigationRequest",
    "SiblingResult",
    "NO_SIBLINGS",
    "resolve_siblings",
]
