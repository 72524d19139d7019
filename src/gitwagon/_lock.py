"""Per-key locks: serialize work on one repository address across threads."""

from __future__ import annotations

import threading
from contextlib import contextmanager


class KeyedLock:
    """A family of locks, one per key, created on first use.

    Holding the lock for one key never blocks holders of another key.
    """

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _get(self, key: str) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def hold(self, key: str):
        lock = self._get(key)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def discard(self, key: str) -> None:
        with self._guard:
            self._locks.pop(key, None)
