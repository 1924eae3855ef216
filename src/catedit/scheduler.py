from __future__ import annotations

import threading
from typing import Callable

from .logging_utils import debug_log

__all__ = ["RebuildScheduler"]


class RebuildScheduler:
    """
    Coalesce rebuild requests into at most one callback per flush.

    Every request gets a new generation token and supersedes whatever was
    still pending. The callback receives the token it runs under; change
    notifications tagged with the token of the last rebuild that ran are that
    rebuild's own echo and are ignored once.
    """

    def __init__(self, callback: Callable[[int], object]) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: int | None = None
        self._last_completed: int | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def request(self) -> int:
        with self._lock:
            self._generation += 1
            if self._pending is not None:
                debug_log(f"scheduler: request {self._pending} superseded")
            self._pending = self._generation
            return self._generation

    def cancel(self) -> None:
        with self._lock:
            self._pending = None

    def flush(self) -> bool:
        """Run the pending rebuild, if any. Returns whether one ran."""
        with self._lock:
            token = self._pending
            self._pending = None
        if token is None:
            return False
        self._callback(token)
        with self._lock:
            self._last_completed = token
        return True

    def notify_change(self, token: int | None = None) -> int | None:
        """
        Record a content change; returns the new request token, or ``None``
        when the change came from a rebuild that already ran.
        """
        if token is not None:
            with self._lock:
                if token == self._last_completed:
                    self._last_completed = None
                    return None
        return self.request()
