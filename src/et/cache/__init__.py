"""
Cache package.

Process-local TTL caching for aggregated earnings lookups:
- Base protocol (base.py): async get/set/delete/exists
- Key-value caches (kv_cache.py): in-memory TTL cache and an always-miss cache
"""

from et.cache.base import CacheProtocol
from et.cache.kv_cache import InMemoryTTLCache, NullCache, create_cache

__all__ = ["CacheProtocol", "InMemoryTTLCache", "NullCache", "create_cache"]
