"""Bounded word cache shared by concurrent encoders."""

from __future__ import annotations

import threading
from typing import Generic, Hashable, Optional, TypeVar


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_CACHE_CAPACITY = 10_000


class Cache(Generic[K, V]):
    """Reads never lock. Writes are dropped when the cache is full or another
    writer holds the lock."""

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        self.capacity = max(0, int(capacity))
        self._map: dict[K, V] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._map)

    def get(self, key: K) -> Optional[V]:
        if not self.capacity:
            return None
        return self._map.get(key)

    def set(self, key: K, value: V) -> bool:
        if not self.capacity or not self._lock.acquire(blocking=False):
            return False
        try:
            if len(self._map) >= self.capacity:
                return False
            self._map[key] = value
            return True
        finally:
            self._lock.release()

    def clear(self) -> None:
        with self._lock:
            self._map.clear()
