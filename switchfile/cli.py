"""Command-line front door for switchfile.

Resolves sibling files of a path in its directory's navigation order, prints
listings, and runs an interactive browse loop over a live directory listing.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from .host import CurrentFile
from .listing import normalize_directory, normalize_reference, scan_directory_files
from .runtime import config as config_store
from .runtime.config import SessionConfig
from .runtime.session import NavigationSession, NavigationStatus
from .siblings import Direction

BROWSE_HELP = "n/Enter: next  p: previous  l: list  q: quit"


def _on_off(value: str) -> bool:
    """argparse type for ``on``/``off`` toggles."""
    lowered = value.strip().lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {value!r}")


def _existing_file(raw: str) -> Path:
    path = Path(raw)
    if not path.exists():
        raise SystemExit(f"Path not found: {path}")
    if not path.is_file():
        raise SystemExit(f"Not a file: {path}")
    return path


def format_listing(entries: Sequence[Path], reference: Path | None = None) -> str:
    """Render one entry name per line, marking ``reference`` with ``*``."""
    out: list[str] = []
    for entry in entries:
        marker = "*" if entry == reference else " "
        out.append(f"{marker} {entry.name}\n")
    return "".join(out)


def describe_path(session: NavigationSession, path: Path, title_decoration: bool) -> str:
    """Title line for ``path``, optionally decorated with its position."""
    if not title_decoration:
        return str(path)
    position = session.position(path)
    if position is None:
        return str(path)
    index, count = position
    return f"{path} [{index}/{count}]"


def run_browse(
    path: Path,
    session_config: SessionConfig,
    *,
    stdin: TextIO,
    stdout: TextIO,
) -> None:
    """Step through ``path``'s siblings using one-letter commands from ``stdin``.

    Enter repeats the last direction, like the quick-pick loop it mirrors.
    """
    current = CurrentFile(normalize_reference(path))
    session = NavigationSession(current, current, config=session_config)

    def show_current() -> None:
        if current.path is None:
            return
        stdout.write(describe_path(session, current.path, session_config.title_decoration) + "\n")
        if session.buttons.visible:
            stdout.write(f"< p | n >  ({BROWSE_HELP})\n")
        stdout.flush()

    last_direction = Direction.NEXT
    try:
        show_current()
        for line in stdin:
            command = line.strip().lower()
            session.poll(force=True)
            if command in ("q", "quit"):
                break
            if command in ("l", "list"):
                reference = current.path
                entries = session.cache.set_scope(reference.parent) if reference is not None else ()
                stdout.write(format_listing(entries, reference))
                stdout.flush()
                continue
            if command in ("n", "next"):
                direction = Direction.NEXT
            elif command in ("p", "prev", "previous"):
                direction = Direction.PREVIOUS
            elif command == "":
                direction = last_direction
            else:
                stdout.write(f"Unknown command {command!r} ({BROWSE_HELP})\n")
                stdout.flush()
                continue

            last_direction = direction
            outcome = session.navigate(direction)
            if outcome.status is NavigationStatus.OPENED:
                show_current()
            elif outcome.status is NavigationStatus.NO_ACTIVE_FILE:
                stdout.write("No active file to navigate from.\n")
            else:
                stdout.write("No sibling file.\n")
            stdout.flush()
    finally:
        session.dispose()


def _cmd_step(args: argparse.Namespace, session_config: SessionConfig) -> None:
    path = _existing_file(args.path)
    current = CurrentFile(path)
    session = NavigationSession(current, current, config=session_config)
    try:
        outcome = session.navigate(Direction(args.command), path)
    finally:
        session.dispose()
    if not outcome.opened or outcome.target is None:
        raise SystemExit(f"No {args.command} sibling for {path}")
    sys.stdout.write(f"{outcome.target}\n")


def _cmd_list(args: argparse.Namespace) -> None:
    path = Path(args.path)
    if not path.exists():
        raise SystemExit(f"Path not found: {path}")
    if path.is_dir():
        directory = normalize_directory(path)
        reference = None
    else:
        reference = normalize_reference(path)
        directory = reference.parent
    entries, error = scan_directory_files(directory)
    if error is not None:
        raise SystemExit(f"Cannot list {directory}: {error}")
    sys.stdout.write(format_listing(entries, reference))


def _cmd_config(args: argparse.Namespace) -> None:
    if args.status_bar is not None:
        config_store.save_status_bar(args.status_bar)
    if args.title_decoration is not None:
        config_store.save_title_decoration(args.title_decoration)
    current = config_store.load_session_config()
    sys.stdout.write(
        f"config: {config_store.CONFIG_PATH}\n"
        f"status_bar: {'on' if current.status_bar else 'off'}\n"
        f"title_decoration: {'on' if current.title_decoration else 'off'}\n"
        f"tab_debounce_seconds: {current.tab_debounce_seconds}\n"
        f"watch_poll_seconds: {current.watch_poll_seconds}\n"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="switchfile",
        description="Step to the next or previous file in the same directory.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log cache and watcher activity.")
    commands = parser.add_subparsers(dest="command", required=True)

    for direction in Direction:
        step = commands.add_parser(direction.value, help=f"Print the {direction.value} sibling of PATH.")
        step.add_argument("path", help="Reference file.")

    listing = commands.add_parser("list", help="Print PATH's directory in navigation order.")
    listing.add_argument("path", help="Reference file or directory.")

    browse = commands.add_parser("browse", help="Interactively step through PATH's siblings.")
    browse.add_argument("path", help="File to start from.")

    settings = commands.add_parser("config", help="Show or change persisted settings.")
    settings.add_argument("--status-bar", type=_on_off, default=None, help="Show navigation buttons (on/off).")
    settings.add_argument(
        "--title-decoration",
        type=_on_off,
        default=None,
        help="Show the file's position next to its name (on/off).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments and dispatch one subcommand.

    Failures that the user should see exit through ``SystemExit`` with a
    message, like argparse's own errors.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )

    if args.command == "config":
        _cmd_config(args)
        return
    if args.command == "list":
        _cmd_list(args)
        return

    session_config = config_store.load_session_config()
    if args.command == "browse":
        run_browse(_existing_file(args.path), session_config, stdin=sys.stdin, stdout=sys.stdout)
        return
    _cmd_step(args, session_config)


if __name__ == "__main__":
    main()
