"""
Key-value cache implementations.

- InMemoryTTLCache: dict-backed cache with lazy expiry at read time.
  No background sweep; an expired entry is dropped when it is next read.
- NullCache: always misses. Used when caching is disabled.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from et.cache.base import CacheProtocol
from et.logging import get_logger
from et.types import CacheEntry

logger = get_logger(__name__)

SECONDS_PER_HOUR = 3600


class InMemoryTTLCache(CacheProtocol):
    """Process-local TTL cache.

    Writers replace entries wholesale; concurrent writers to one key resolve
    as last-write-wins. The lock only guards dict access and is never held
    across an await.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl_hours: float) -> None:
        expires_at = self._clock() + ttl_hours * SECONDS_PER_HOUR
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
        logger.debug("Cache set", key=key, ttl_hours=ttl_hours)

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NullCache(CacheProtocol):
    """No-op cache that always misses."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl_hours: float) -> None:
        pass

    async def delete(self, key: str) -> bool:
        return False

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> None:
        pass


def create_cache(backend: str) -> CacheProtocol:
    """Build a cache from the CACHE_BACKEND setting."""
    if backend == "memory":
        return InMemoryTTLCache()
    return NullCache()
