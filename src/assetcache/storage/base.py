"""
Storage backend interface.

The cache core never touches the filesystem or network directly. A backend
supplies the handful of primitives it needs:

- base_path: application-private root, stable across restarts
- path_exists / create_directory / delete_recursive
- download_to_file: complete file or no file, never a partial one
- list_directory: regular files with modification times
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from assetcache.types import FileStat


class StorageBackend(ABC):
    """Abstract interface for cache storage backends."""

    @abstractmethod
    def base_path(self) -> Path:
        """Return the writable, application-private root directory."""
        ...

    @abstractmethod
    async def path_exists(self, path: Path) -> bool:
        """Check whether a file or directory exists at path."""
        ...

    @abstractmethod
    async def create_directory(
        self, path: Path, options: Mapping[str, Any] | None = None
    ) -> None:
        """Create a directory (and parents). Must succeed if it already exists.

        Recognised options:
            exclude_from_backup: Mark the directory so backup tools skip it.
        Unknown options are ignored.
        """
        ...

    @abstractmethod
    async def delete_recursive(self, path: Path) -> None:
        """Delete a file, or a directory and everything under it."""
        ...

    @abstractmethod
    async def download_to_file(self, url: str, destination: Path) -> bool:
        """Fetch url into destination.

        Returns:
            True if a complete file now exists at destination, False otherwise.
            On False no file may be left at destination.
        """
        ...

    @abstractmethod
    async def list_directory(self, path: Path) -> list[FileStat]:
        """List regular files directly inside path with modification times."""
        ...
