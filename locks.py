"""Per-key locking for records that are mutated independently."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """Hands out one re-entrant lock per key (book id, user id, ...).

    Locks are created on first use. ``discard`` drops a key whose record is
    gone for good; a thread still holding the old lock object finishes
    normally and must re-check that its record exists after acquiring.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def _get(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._get(key)
        with lock:
            yield

    def discard(self, key: str) -> None:
        with self._guard:
            self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
