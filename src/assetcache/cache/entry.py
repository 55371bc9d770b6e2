"""
KeyedCacheEntry: fetch-on-miss resolution of one logical object.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING

from assetcache.logging import get_logger, log_context
from assetcache.types import UrlResolver

if TYPE_CHECKING:
    from assetcache.cache.registry import CacheRegistry

logger = get_logger(__name__)


class KeyedCacheEntry:
    """Handle for one cached object, addressed by key.

    The entry holds no file. Its file is a pure function of key and
    extension, so it can be evicted or wiped while the entry lives on.
    """

    def __init__(self, key: str, registry: CacheRegistry) -> None:
        self.key = key
        self._registry = registry

    def __repr__(self) -> str:
        return f"KeyedCacheEntry(key={self.key!r})"

    async def resolve_path(
        self,
        extension: str,
        url_resolver: UrlResolver,
    ) -> str | None:
        """Return a local path for this object, downloading it on a miss.

        Args:
            extension: Appended verbatim to the hashed name (include the dot).
            url_resolver: Called with no arguments only on a miss; returns a
                URL or None, directly or as an awaitable.

        Returns:
            The formatted path of a complete file, or None when no URL was
            available or the download failed. Never raises.
        """
        registry = self._registry

        with log_context(cache_key=self.key, operation="resolve"):
            await registry.ensure_directory_exists()
            path = registry.deterministic_path(self.key, extension)

            if await registry.file_exists(path):
                return registry.format_path(path)

            url = await self._resolve_url(url_resolver)
            if not url:
                logger.debug("No URL available for cache miss")
                return None

            if not await registry.download(url, path):
                return None

            if not await registry.file_exists(path):
                logger.warning("Download reported success but file is missing", path=str(path))
                return None

            logger.info("Cached asset", path=str(path))
            return registry.format_path(path)

    async def _resolve_url(self, url_resolver: UrlResolver) -> str | None:
        try:
            url = url_resolver()
            if inspect.isawaitable(url):
                url = await url
        except Exception:
            logger.exception("URL resolver failed")
            return None
        return url or None
