"""
Storage backends for the asset cache.

- base.py: StorageBackend, the primitives the cache core depends on
- local.py: LocalStorage, pathlib/shutil filesystem access plus httpx downloads
"""

from assetcache.storage.base import StorageBackend
from assetcache.storage.local import LocalStorage

__all__ = ["LocalStorage", "StorageBackend"]
