"""
Per-user critical sections for "read last event, then append" operations.
"""

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Iterator


class UserLockRegistry:
    """One re-entrant lock per user id; different users never contend."""

    def __init__(self):
        self._locks = {}
        self._registry_lock = Lock()

    def get(self, user_id: int):
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        lock = self.get(user_id)
        with lock:
            yield


# Process-wide registry shared by request handlers and the reconciliation job
user_locks = UserLockRegistry()
