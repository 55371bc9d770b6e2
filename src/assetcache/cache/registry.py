"""
CacheRegistry: one KeyedCacheEntry per logical key, plus storage upkeep.

The registry owns:
- the memoized key -> entry map (guarded by a lock, grows monotonically)
- path derivation: storage_dir / sha1(key) + extension
- the flat storage directory (lazy creation, full wipe, age eviction)
- optional sharing of in-flight downloads per path

Wipe and eviction are opportunistic. They log and count failures in a
MaintenanceResult and never raise.
"""

from __future__ import annotations

import asyncio
import hashlib
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from assetcache.cache.entry import KeyedCacheEntry
from assetcache.config import Settings, get_settings
from assetcache.logging import get_logger, log_context
from assetcache.storage.base import StorageBackend
from assetcache.storage.local import LocalStorage
from assetcache.types import MaintenanceResult, PathFormat, utc_now

logger = get_logger(__name__)


class CacheRegistry:
    """Directory of cache entries keyed by logical key.

    Construct one at application start and pass it to call sites.
    """

    def __init__(
        self,
        storage: StorageBackend,
        *,
        directory_name: str = "asset-cache",
        path_format: PathFormat = PathFormat.BARE,
        exclude_from_backup: bool = True,
        dedupe_downloads: bool = False,
    ) -> None:
        """Initialize the registry.

        Args:
            storage: Backend providing filesystem and download primitives.
            directory_name: Flat storage directory under the backend's base path.
            path_format: How resolved paths are returned to callers.
            exclude_from_backup: Hint passed when creating the storage directory.
            dedupe_downloads: Concurrent misses for one path share a download.
        """
        self.storage = storage
        self.storage_dir = storage.base_path() / directory_name
        self.path_format = path_format
        self.exclude_from_backup = exclude_from_backup
        self.dedupe_downloads = dedupe_downloads

        self._entries: dict[str, KeyedCacheEntry] = {}
        self._lock = threading.Lock()
        self._inflight: dict[tuple[asyncio.AbstractEventLoop, Path], asyncio.Task[bool]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_entry(self, key: str) -> KeyedCacheEntry:
        """Return the entry for key, creating it on first use."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = KeyedCacheEntry(key, self)
                self._entries[key] = entry
            return entry

    def deterministic_path(self, key: str, extension: str = "") -> Path:
        """Map key + extension to a file path. Pure; never touches disk."""
        # surrogatepass keeps os.fsdecode-style keys hashable; valid UTF-8 is unchanged
        digest = hashlib.sha1(key.encode("utf-8", "surrogatepass")).hexdigest()
        return self.storage_dir / f"{digest}{extension}"

    def format_path(self, path: Path) -> str:
        return self.path_format.format(path)

    async def ensure_directory_exists(self) -> None:
        """Create the storage directory if missing. Safe to call repeatedly."""
        try:
            if not await self.storage.path_exists(self.storage_dir):
                await self._create_directory()
        except Exception as e:
            logger.warning(
                "Could not create storage directory",
                path=str(self.storage_dir),
                error=str(e),
            )

    async def _create_directory(self) -> None:
        await self.storage.create_directory(
            self.storage_dir,
            {"exclude_from_backup": self.exclude_from_backup},
        )

    async def file_exists(self, path: Path) -> bool:
        """Existence check that treats backend errors as a miss."""
        try:
            return await self.storage.path_exists(path)
        except Exception as e:
            logger.warning("Existence check failed", path=str(path), error=str(e))
            return False

    async def download(self, url: str, path: Path) -> bool:
        """Download url to path, sharing the transfer when dedupe is on."""
        if not self.dedupe_downloads:
            return await self._download(url, path)

        # Tasks are bound to their event loop; threads with their own loops
        # never join each other's downloads
        slot = (asyncio.get_running_loop(), path)
        with self._lock:
            task = self._inflight.get(slot)
            joined = task is not None
            if task is None:
                task = asyncio.ensure_future(self._download(url, path))
                self._inflight[slot] = task
                task.add_done_callback(lambda done: self._forget(slot, done))

        if joined:
            logger.debug("Joining in-flight download", path=str(path))

        # One caller being cancelled must not cancel the shared transfer
        return await asyncio.shield(task)

    def _forget(
        self,
        slot: tuple[asyncio.AbstractEventLoop, Path],
        done: asyncio.Task[bool],
    ) -> None:
        with self._lock:
            if self._inflight.get(slot) is done:
                del self._inflight[slot]

    async def _download(self, url: str, path: Path) -> bool:
        try:
            ok = await self.storage.download_to_file(url, path)
        except Exception as e:
            logger.warning("Download raised", path=str(path), error=str(e))
            ok = False

        if not ok:
            await self._discard_partial(path)
        return ok

    async def _discard_partial(self, path: Path) -> None:
        """Remove anything a failed download left at path."""
        if not await self.file_exists(path):
            return
        try:
            await self.storage.delete_recursive(path)
            logger.debug("Removed partial download", path=str(path))
        except Exception as e:
            logger.warning("Could not remove partial download", path=str(path), error=str(e))

    async def wipe_all(self) -> MaintenanceResult:
        """Delete every cached file and recreate the empty storage directory.

        In-memory entries stay valid; their next resolve_path refetches.
        """
        result = MaintenanceResult()
        with log_context(operation="wipe"):
            try:
                if await self.storage.path_exists(self.storage_dir):
                    await self.storage.delete_recursive(self.storage_dir)
                    result.deleted = 1
            except Exception as e:
                result.record_failure(e)
                logger.warning("Failed to delete storage directory", error=str(e))

            try:
                await self._create_directory()
            except Exception as e:
                result.record_failure(e)
                logger.warning("Failed to recreate storage directory", error=str(e))

            logger.info("Cache wiped", path=str(self.storage_dir), ok=result.ok)
        return result

    async def evict_older_than(self, cutoff: datetime | float) -> MaintenanceResult:
        """Delete files last modified strictly before cutoff.

        Args:
            cutoff: Aware datetime (naive is read as UTC) or POSIX timestamp.

        Returns:
            Counts of deleted files; the first failed deletion stops the
            batch and the rest are reported as skipped.
        """
        result = MaintenanceResult()
        cutoff_at = _as_utc(cutoff)

        with log_context(operation="evict"):
            try:
                if not await self.storage.path_exists(self.storage_dir):
                    return result
                files = await self.storage.list_directory(self.storage_dir)
            except Exception as e:
                result.record_failure(e)
                logger.warning("Failed to list storage directory", error=str(e))
                return result

            stale = [f for f in files if _as_utc(f.modified_at) < cutoff_at]

            for index, stat in enumerate(stale):
                try:
                    await self.storage.delete_recursive(stat.path)
                except Exception as e:
                    result.record_failure(e)
                    result.skipped = len(stale) - index - 1
                    logger.warning(
                        "Eviction stopped on failed delete",
                        path=str(stat.path),
                        error=str(e),
                        skipped=result.skipped,
                    )
                    break
                result.deleted += 1

            logger.info(
                "Evicted stale files",
                cutoff=cutoff_at.isoformat(),
                scanned=len(files),
                deleted=result.deleted,
            )
        return result

    async def evict_older_than_age(self, max_age: timedelta) -> MaintenanceResult:
        """Evict files older than max_age relative to now."""
        return await self.evict_older_than(utc_now() - max_age)


def _as_utc(value: datetime | float) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.fromtimestamp(value, tz=timezone.utc)


def build_registry(
    settings: Settings | None = None,
    storage: StorageBackend | None = None,
) -> CacheRegistry:
    """Build a registry from settings.

    Args:
        settings: Settings to use; defaults to get_settings().
        storage: Backend to use; defaults to LocalStorage under BASE_DIR.

    Returns:
        A new CacheRegistry.
    """
    settings = settings or get_settings()
    if storage is None:
        storage = LocalStorage(
            settings.BASE_DIR,
            timeout=settings.DOWNLOAD_TIMEOUT_SECONDS,
            max_attempts=settings.DOWNLOAD_MAX_ATTEMPTS,
        )

    return CacheRegistry(
        storage,
        directory_name=settings.DIRECTORY_NAME,
        path_format=settings.PATH_FORMAT,
        exclude_from_backup=settings.EXCLUDE_FROM_BACKUP,
        dedupe_downloads=settings.DEDUPE_DOWNLOADS,
    )
