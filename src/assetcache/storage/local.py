"""
Local filesystem storage backend with httpx streaming downloads.

Downloads stream into a hidden temporary sibling of the destination and are
renamed into place only once the body has been fully written, so a failed
transfer never leaves a file at the destination path.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType
from typing import Any
from uuid import uuid4

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from assetcache.exceptions import DownloadError, StorageError
from assetcache.logging import get_logger
from assetcache.storage.base import StorageBackend
from assetcache.types import FileStat

logger = get_logger(__name__)

# Cache Directory Tagging convention (https://bford.info/cachedir/)
CACHEDIR_TAG_NAME = "CACHEDIR.TAG"
CACHEDIR_TAG_CONTENT = (
    "Signature: 8a477f597d28d172789f06886806bc55\n"
    "# This file is a cache directory tag created by assetcache.\n"
    "# For information about cache directory tags see https://bford.info/cachedir/\n"
)

DOWNLOAD_CHUNK_SIZE = 64 * 1024

# In-progress downloads; never listed, so eviction cannot pull them mid-transfer
PARTIAL_SUFFIX = ".part"


class LocalStorage(StorageBackend):
    """Filesystem backend rooted at a base directory.

    Use as an async context manager, or call aclose() when done, to release
    the HTTP client.
    """

    def __init__(
        self,
        base_dir: str | Path,
        *,
        timeout: float = 30.0,
        max_attempts: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize local storage.

        Args:
            base_dir: Application-private root directory.
            timeout: Timeout in seconds applied to each download.
            max_attempts: Attempts per download; 1 disables retries.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            headers: Extra request headers sent with every download.
        """
        self._base_dir = Path(base_dir)
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._transport = transport
        self._headers = dict(headers or {})
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> LocalStorage:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def base_path(self) -> Path:
        return self._base_dir

    async def path_exists(self, path: Path) -> bool:
        return path.exists()

    async def create_directory(
        self, path: Path, options: Mapping[str, Any] | None = None
    ) -> None:
        options = options or {}
        try:
            path.mkdir(parents=True, exist_ok=True)
            if options.get("exclude_from_backup"):
                tag = path / CACHEDIR_TAG_NAME
                if not tag.exists():
                    tag.write_text(CACHEDIR_TAG_CONTENT, encoding="utf-8")
        except OSError as e:
            raise StorageError(
                f"Failed to create directory {path}",
                context={"operation": "create_directory", "path": str(path), "error": str(e)},
            ) from e

    async def delete_recursive(self, path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise StorageError(
                f"Failed to delete {path}",
                context={"operation": "delete_recursive", "path": str(path), "error": str(e)},
            ) from e

    async def list_directory(self, path: Path) -> list[FileStat]:
        try:
            stats: list[FileStat] = []
            for child in sorted(path.iterdir()):
                if _is_reserved(child.name) or not child.is_file():
                    continue
                mtime = child.stat().st_mtime
                stats.append(
                    FileStat(
                        path=child,
                        modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                    )
                )
            return stats
        except OSError as e:
            raise StorageError(
                f"Failed to list {path}",
                context={"operation": "list_directory", "path": str(path), "error": str(e)},
            ) from e

    async def download_to_file(self, url: str, destination: Path) -> bool:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(DownloadError),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
                reraise=True,
            ):
                with attempt:
                    size = await self._stream_to_file(url, destination)
        except DownloadError as e:
            logger.warning("Download failed", url=_redact_query(url), error=str(e))
            return False

        logger.debug(
            "Downloaded asset",
            url=_redact_query(url),
            path=str(destination),
            bytes=size,
        )
        return True

    async def _stream_to_file(self, url: str, destination: Path) -> int:
        """Stream one response body to destination via a temporary file.

        Returns:
            Number of bytes written.

        Raises:
            DownloadError: On transport errors, non-2xx responses or disk errors.
        """
        client = await self._get_client()
        tmp_path = destination.with_name(f".{destination.name}.{uuid4().hex}{PARTIAL_SUFFIX}")
        written = 0

        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"Unexpected status {response.status_code}",
                        context={
                            "url": _redact_query(url),
                            "destination": str(destination),
                            "status_code": response.status_code,
                        },
                    )
                with tmp_path.open("wb") as fh:
                    async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                        fh.write(chunk)
                        written += len(chunk)
            os.replace(tmp_path, destination)
        except httpx.HTTPError as e:
            raise DownloadError(
                f"Transfer error: {e.__class__.__name__}",
                context={"url": _redact_query(url), "destination": str(destination)},
            ) from e
        except OSError as e:
            raise DownloadError(
                "Disk error while writing download",
                context={"destination": str(destination), "error": str(e)},
            ) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        return written


def _is_reserved(name: str) -> bool:
    """Names the backend owns: the backup tag and in-progress downloads."""
    return name == CACHEDIR_TAG_NAME or (name.startswith(".") and name.endswith(PARTIAL_SUFFIX))


def _redact_query(url: str) -> str:
    """Strip the query string; presigned URLs carry credentials there."""
    return url.split("?", 1)[0]
