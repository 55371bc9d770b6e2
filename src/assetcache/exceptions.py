"""
Exception hierarchy for the asset cache.

All exceptions inherit from AssetCacheError, which carries optional
structured context for logging. None of these escape the public cache
operations; they are raised inside storage backends and converted into
absent results or maintenance counts at the registry/entry boundary.
"""

from __future__ import annotations

from typing import Any


class AssetCacheError(Exception):
    """Base exception for all asset cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(AssetCacheError):
    """Raised when configuration is invalid or missing.

    Raised by config.load_settings() when ASSETCACHE_* values fail
    validation, e.g. a DIRECTORY_NAME containing a path separator.
    """

    pass


class StorageError(AssetCacheError):
    """Raised when a filesystem operation in a storage backend fails.

    Context should include:
        - operation: The primitive that failed (create, delete, list, ...)
        - path: The path being operated on
    """

    pass


class DownloadError(AssetCacheError):
    """Raised when transferring a remote asset to disk fails.

    Context should include:
        - url: The URL being fetched
        - destination: The target file path
        - status_code: HTTP status code if applicable
    """

    pass
