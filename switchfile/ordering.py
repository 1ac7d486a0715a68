"""Numeric-aware, locale-like ordering for sibling file names.

Digit runs compare by value (``file2`` before ``file10``), punctuation sorts
before digits and digits before letters, and letters compare accent- and
case-insensitively. Ties fall back to the raw name so the order is total and
does not depend on the process locale.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from pathlib import Path

_DIGIT_RUN = re.compile(r"[0-9]+")

_SYMBOL_CLASS = 0
_DIGIT_CLASS = 1
_LETTER_CLASS = 2

NameToken = tuple[int, int, str]


def _fold(char: str) -> str:
    """Return ``char`` without combining marks, case-folded."""
    decomposed = unicodedata.normalize("NFKD", char)
    base = "".join(part for part in decomposed if not unicodedata.combining(part))
    return (base or char).casefold()


def _char_token(char: str) -> NameToken:
    char_class = _LETTER_CLASS if char.isalpha() else _SYMBOL_CLASS
    return (char_class, 0, _fold(char))


def name_tokens(name: str) -> tuple[NameToken, ...]:
    """Split ``name`` into comparable tokens.

    Every token is ``(class, numeric_value, folded_text)`` so tokens of
    different kinds never compare an int against a str.
    """
    tokens: list[NameToken] = []
    pos = 0
    for match in _DIGIT_RUN.finditer(name):
        tokens.extend(_char_token(char) for char in name[pos : match.start()])
        tokens.append((_DIGIT_CLASS, int(match.group()), ""))
        pos = match.end()
    tokens.extend(_char_token(char) for char in name[pos:])
    return tuple(tokens)


def natural_key(name: str) -> tuple[tuple[NameToken, ...], str, str]:
    """Sort key for one file name."""
    return (name_tokens(name), name.casefold(), name)


def path_sort_key(path: Path) -> tuple[tuple[tuple[NameToken, ...], str, str], str]:
    """Sort key for one path, ordered by its file name first."""
    return (natural_key(path.name), str(path))


def sort_names(names: Iterable[str]) -> list[str]:
    """Return a new list of names in navigation order."""
    return sorted(names, key=natural_key)


def sort_paths(paths: Iterable[Path]) -> tuple[Path, ...]:
    """Return a new tuple of paths in navigation order; input is not mutated."""
    return tuple(sorted(paths, key=path_sort_key))


__all__ = [
    "name_tokens",
    "natural_key",
    "path_sort_key",
    "sort_names",
    "sort_paths",
]
