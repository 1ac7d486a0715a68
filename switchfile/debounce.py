"""Deadline-based debounce for bursty host signals.

The owner drives it from its event loop by calling ``poll``; nothing runs on
another thread. Each ``trigger`` pushes the deadline out, so only the last
signal of a burst is acted upon.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.03


class Debouncer:
    """Run ``callback`` once after ``delay_seconds`` without new triggers."""

    def __init__(
        self,
        callback: Callable[[], None],
        delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        *,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self.delay_seconds = max(0.0, delay_seconds)
        self._monotonic = monotonic
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    def trigger(self) -> None:
        """Schedule the callback, cancelling any evaluation still pending."""
        self._deadline = self._monotonic() + self.delay_seconds

    def cancel(self) -> None:
        self._deadline = None

    def poll(self) -> bool:
        """Fire the callback if the quiet period has elapsed.

        Returns whether the callback ran. Callback errors are logged and do not
        escape into the caller's loop.
        """
        if self._deadline is None or self._monotonic() < self._deadline:
            return False
        self._deadline = None
        try:
            self._callback()
        except Exception:
            logger.exception("debounced callback failed")
        return True


__all__ = ["DEFAULT_DEBOUNCE_SECONDS", "Debouncer"]
