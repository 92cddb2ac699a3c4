"""Anti-spam cache for password-cracked notifications."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

__all__ = ["PasswordNotificationCache"]


def _seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class PasswordNotificationCache:
    """Remembers when a notification was last sent for each task."""

    def __init__(
        self,
        expire_after: float | timedelta,
        cleanup_interval: float | timedelta = 60.0,
        clear_after: float | timedelta = 600.0,
    ) -> None:
        self._expire = _seconds(expire_after)
        self._interval = _seconds(cleanup_interval)
        self._clear_after = _seconds(clear_after)
        self._data: dict[str, float] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._cleanup_loop, daemon=True)
        self._thread.start()

    def _cleanup_loop(self) -> None:
        while not self._stopped.wait(self._interval):
            self.purge_expired()

    def purge_expired(self) -> int:
        """Drop entries older than the clear-out age; return how many were dropped."""
        with self._lock:
            now = time.monotonic()
            stale = [key for key, sent in self._data.items() if now - sent >= self._clear_after]
            for key in stale:
                del self._data[key]
        return len(stale)

    def can_send_email(self, task_id: str) -> bool:
        """Return True and record the time if no email went out for the task recently."""
        with self._lock:
            now = time.monotonic()
            last = self._data.get(task_id)
            if last is not None and now - last <= self._expire:
                return False
            self._data[task_id] = now
            return True

    def stop(self) -> None:
        """Stop the cleanup thread and forget all entries."""
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()
        with self._lock:
            self._data = {}

    def __enter__(self) -> PasswordNotificationCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()