"""Public package surface for switchfile.

Exports ``main`` for programmatic CLI invocation.
The ordering, sibling and listing core lives in submodules.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
