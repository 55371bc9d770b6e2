"""
assetcache: a local disk cache for remote binary assets keyed by a stable
logical identifier instead of by (possibly rotating, presigned) URL.
"""

from assetcache.cache import CacheRegistry, KeyedCacheEntry, build_registry
from assetcache.types import MaintenanceResult, PathFormat

__version__ = "0.1.0"

__all__ = [
    "CacheRegistry",
    "KeyedCacheEntry",
    "MaintenanceResult",
    "PathFormat",
    "__version__",
    "build_registry",
]
