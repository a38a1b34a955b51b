"""Per-schedule mutual exclusion for money-moving transactions"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class ScheduleLockRegistry:
    """
    One lock per schedule id, alive while some thread holds or waits on it.

    Complements SELECT ... FOR UPDATE on the schedule row: the row lock
    serializes across processes on PostgreSQL, this serializes threads in one
    process on any backend (SQLite ignores FOR UPDATE).
    """

    def __init__(self):
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[Hashable, List] = {}
        self._guard = threading.Lock()

    def _acquire_entry(self, key: Hashable) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, schedule_id: Hashable) -> Iterator[None]:
        key = str(schedule_id)
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)


schedule_locks = ScheduleLockRegistry()
