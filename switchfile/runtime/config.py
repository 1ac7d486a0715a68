"""Persistent JSON settings for the navigation front ends.

Stores button visibility toggles and timing knobs for debounce and watch
polling. All access is defensive: malformed or missing config falls back to
defaults. The ordering/listing core reads none of this.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

from ..debounce import DEFAULT_DEBOUNCE_SECONDS
from ..watch import DEFAULT_POLL_SECONDS

APP_NAME = "switchfile"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


@dataclass(frozen=True)
class SessionConfig:
    """Settings consumed by ``NavigationSession`` and the CLI."""

    status_bar: bool = True
    title_decoration: bool = False
    tab_debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    watch_poll_seconds: float = DEFAULT_POLL_SECONDS


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Any filesystem/serialization error is ignored to keep runtime behavior
    non-fatal when config cannot be written.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception:
        pass


def _coerce_bool(value: object, default: bool) -> bool:
    """Only explicit booleans count; anything else is the default."""
    return value if isinstance(value, bool) else default


def _coerce_positive_seconds(value: object, default: float) -> float:
    """Accept positive ints/floats (not booleans) as a duration in seconds."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value <= 0:
        return default
    return float(value)


def load_session_config() -> SessionConfig:
    """Read settings, normalizing every key independently."""
    data = load_config()
    defaults = SessionConfig()
    return SessionConfig(
        status_bar=_coerce_bool(data.get("status_bar"), defaults.status_bar),
        title_decoration=_coerce_bool(data.get("title_decoration"), defaults.title_decoration),
        tab_debounce_seconds=_coerce_positive_seconds(
            data.get("tab_debounce_seconds"), defaults.tab_debounce_seconds
        ),
        watch_poll_seconds=_coerce_positive_seconds(
            data.get("watch_poll_seconds"), defaults.watch_poll_seconds
        ),
    )


def save_status_bar(show: bool) -> None:
    """Persist the navigation-button toggle as a boolean."""
    config = load_config()
    config["status_bar"] = bool(show)
    save_config(config)


def save_title_decoration(show: bool) -> None:
    """Persist the title-decoration toggle as a boolean."""
    config = load_config()
    config["title_decoration"] = bool(show)
    save_config(config)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "SessionConfig",
    "load_config",
    "load_session_config",
    "save_config",
    "save_status_bar",
    "save_title_decoration",
]
