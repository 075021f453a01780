# coordinator/cache.py
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """
    Small in-memory cache whose entries expire ``ttl`` seconds after being stored.

    Used by the request coordinator to keep settled values around for a short
    while after their key stops being requested. Expired entries are dropped
    lazily on access. Nothing is written to disk.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._store: Dict[Hashable, CacheEntry] = {}

    def get(self, key) -> Optional[CacheEntry]:
        self.prune()
        return self._store.get(key)

    def set(self, key, value) -> CacheEntry:
        entry = CacheEntry(value=value, stored_at=self._clock())
        self._store[key] = entry
        self.prune()
        return entry

    def evict(self, key):
        self._store.pop(key, None)

    def clear(self):
        self._store.clear()

    def prune(self):
        now = self._clock()
        expired = [k for k, e in self._store.items() if now - e.stored_at > self.ttl]
        for k in expired:
            del self._store[k]

    def __len__(self):
        return len(self._store)

    def __contains__(self, key):
        return self.get(key) is not None
