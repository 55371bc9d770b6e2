"""
Configuration management using pydantic-settings.

Loads configuration from ASSETCACHE_* environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from assetcache.exceptions import ConfigurationError
from assetcache.types import PathFormat


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        ASSETCACHE_BASE_DIR: Application-private document root
        ASSETCACHE_DIRECTORY_NAME: Flat storage directory under the base dir
        ASSETCACHE_PATH_FORMAT: "bare" or "file_uri" for returned paths
        ASSETCACHE_EXCLUDE_FROM_BACKUP: Tag the storage directory for backup exclusion
        ASSETCACHE_DOWNLOAD_TIMEOUT_SECONDS: Per-download timeout
        ASSETCACHE_DOWNLOAD_MAX_ATTEMPTS: Attempts per download (1 = no retries)
        ASSETCACHE_DEDUPE_DOWNLOADS: Share in-flight downloads for the same path
        ASSETCACHE_DEFAULT_MAX_AGE_DAYS: Default age cutoff for `assetcache evict`
        ASSETCACHE_LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="ASSETCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    BASE_DIR: Path = Field(
        default=Path("~/.local/share/assetcache"),
        description="Application-private document root",
    )
    DIRECTORY_NAME: str = Field(
        default="asset-cache",
        description="Name of the flat storage directory under BASE_DIR",
    )

    PATH_FORMAT: PathFormat = Field(
        default=PathFormat.BARE,
        description="How resolved paths are returned (bare or file_uri)",
    )
    EXCLUDE_FROM_BACKUP: bool = Field(
        default=True,
        description="Ask the storage backend to exclude the cache from backups",
    )

    DOWNLOAD_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0.0, description="Timeout for a single download"
    )
    DOWNLOAD_MAX_ATTEMPTS: int = Field(
        default=1, ge=1, le=10, description="Attempts per download"
    )
    DEDUPE_DOWNLOADS: bool = Field(
        default=False,
        description="Concurrent misses for the same file share one download",
    )

    DEFAULT_MAX_AGE_DAYS: int = Field(
        default=30, ge=0, description="Default age cutoff for eviction"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("BASE_DIR")
    @classmethod
    def expand_base_dir(cls, v: Path) -> Path:
        """Expand ~ so the base directory is stable across working directories."""
        return v.expanduser()

    @field_validator("DIRECTORY_NAME")
    @classmethod
    def validate_directory_name(cls, v: str) -> str:
        """The storage directory must be a single path component."""
        v = v.strip()
        if not v or v in (".", "..") or "/" in v or "\\" in v:
            raise ValueError(
                "DIRECTORY_NAME must be a single, non-empty path component"
            )
        return v

    @property
    def storage_dir(self) -> Path:
        """Flat directory holding all cached files."""
        return self.BASE_DIR / self.DIRECTORY_NAME

    def redacted_display(self) -> dict[str, str | int | float | bool | None]:
        """Return settings for display. Nothing here is secret."""
        return {
            "BASE_DIR": str(self.BASE_DIR),
            "DIRECTORY_NAME": self.DIRECTORY_NAME,
            "PATH_FORMAT": self.PATH_FORMAT.value,
            "EXCLUDE_FROM_BACKUP": self.EXCLUDE_FROM_BACKUP,
            "DOWNLOAD_TIMEOUT_SECONDS": self.DOWNLOAD_TIMEOUT_SECONDS,
            "DOWNLOAD_MAX_ATTEMPTS": self.DOWNLOAD_MAX_ATTEMPTS,
            "DEDUPE_DOWNLOADS": self.DEDUPE_DOWNLOADS,
            "DEFAULT_MAX_AGE_DAYS": self.DEFAULT_MAX_AGE_DAYS,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()


def load_settings() -> Settings:
    """Reload settings from the environment.

    Returns:
        Fresh Settings instance (also cached for get_settings()).

    Raises:
        ConfigurationError: If any setting is invalid; context lists the fields.
    """
    clear_settings_cache()
    try:
        return get_settings()
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            "Invalid asset cache configuration",
            context={"fields": fields, "errors": e.error_count()},
        ) from e
