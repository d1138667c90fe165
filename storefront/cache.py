import threading
import time
from typing import Any, Callable, Optional


class TTLCache:
    """Interface for the small key/value caches used by the service.

    Implementations must treat an entry older than ``ttl_seconds`` as absent.
    """

    ttl_seconds: float

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def evict(self, key: str) -> None:
        raise NotImplementedError

    def sweep(self) -> int:
        raise NotImplementedError


class InMemoryTTLCache(TTLCache):
    """Process-local cache. Each worker process holds its own copy."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def _expired(self, stored_at, now):
        return now - stored_at >= self.ttl_seconds

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._expired(stored_at, self._clock()):
                del self._entries[key]
                return None
            return value

    def set(self, key, value):
        with self._lock:
            self._entries[key] = (self._clock(), value)
        self.sweep()

    def evict(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self):
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self):
        with self._lock:
            return len(self._entries)
