"""
Per-guardian locks serialising mutations of one guardian's player list.
"""

import threading
from contextlib import contextmanager
from typing import Dict


class GuardianLockRegistry:
    """Hands out one re-entrant lock per guardian id."""

    def __init__(self):
        self._locks: Dict[int, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, guardian_id: int) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(guardian_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[guardian_id] = lock
            return lock

    @contextmanager
    def hold(self, guardian_id: int):
        lock = self.lock_for(guardian_id)
        with lock:
            yield
