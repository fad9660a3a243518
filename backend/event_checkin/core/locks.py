import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """
    Lock table keyed by string. Holders of the same key are serialized,
    different keys never contend beyond the short table update.
    Entries are dropped once no thread holds or waits on them.
    """

    def __init__(self) -> None:
        self._table_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._refs: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._table_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
                self._refs[key] = 0
            self._refs[key] += 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._table_lock:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._locks)
