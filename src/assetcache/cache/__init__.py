"""
Cache core.

- entry.py: KeyedCacheEntry, fetch-on-miss path resolution for one key
- registry.py: CacheRegistry, memoized entries and storage directory upkeep
"""

from assetcache.cache.entry import KeyedCacheEntry
from assetcache.cache.registry import CacheRegistry, build_registry

__all__ = ["CacheRegistry", "KeyedCacheEntry", "build_registry"]
