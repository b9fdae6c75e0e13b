"""Per-key debounced callbacks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import QTimer

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Trailing-edge debounce of a callback, one independent timer per key.

    Each :meth:`trigger` for a key restarts that key's quiet period; when the
    period elapses without another trigger the callback runs once with the
    key.  Keys never cancel each other, so edits to one note cannot swallow
    the pending snapshot of another.

    Timers run on the Qt event loop of the calling thread.

    Args:
        callback: Function to call with the key when the quiet period ends
        debounce_ms: Quiet period in milliseconds

    """

    def __init__(self, callback: Callable[[str], None], debounce_ms: int = 900) -> None:
        #: The function to call when a key's quiet period ends.
        self.callback = callback
        #: The quiet period in milliseconds.
        self.debounce_ms = debounce_ms
        #: The pending timers, keyed by key.
        self._timers: dict[str, QTimer] = {}

    def trigger(self, key: str) -> None:
        """
        Schedule the callback for ``key``, cancelling any pending run.
        """
        timer = self._timers.get(key)
        if timer is None:
            timer = QTimer()
            timer.setSingleShot(True)
            timer.timeout.connect(lambda: self._fire(key))
            self._timers[key] = timer
        timer.start(self.debounce_ms)

    def is_pending(self, key: str) -> bool:
        timer = self._timers.get(key)
        return timer is not None and timer.isActive()

    def flush(self, key: str) -> bool:
        """
        Run a pending callback for ``key`` immediately.

        Returns:
            True if a callback was pending and has run

        """
        if not self.is_pending(key):
            return False
        self._fire(key)
        return True

    def cancel(self, key: str) -> None:
        """
        Cancel the pending callback for ``key`` without running it.
        """
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    def _fire(self, key: str) -> None:
        """
        Run the callback for ``key``.

        The timer is dropped first so the callback may trigger again.  An
        exception from the callback is logged and does not break the
        debouncer.
        """
        self.cancel(key)
        try:
            self.callback(key)
        except Exception:
            logger.exception("Debounced callback failed for %s", key)
