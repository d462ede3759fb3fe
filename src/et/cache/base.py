"""
Base classes for caching.

Cached values are supplementary: every value must be re-derivable from the
persisted store or an upstream call, so a backend may lose entries at any
time (restart, eviction) without affecting correctness.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class CacheProtocol(ABC):
    """Abstract interface for cache implementations."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from the cache, or None on miss/expiry."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_hours: float) -> None:
        """Set a value in the cache, replacing any previous entry."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a live key exists in the cache."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""
        ...
