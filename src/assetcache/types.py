"""
Core types for the asset cache.

- PathFormat: how resolved file paths are handed back to callers
- FileStat: one directory listing row (path + modification time)
- MaintenanceResult: counts reported by wipe and eviction
- UrlResolver: caller-supplied capability producing a fetch URL on demand
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Union

# Zero-argument callable returning a URL, None, or an awaitable of either.
UrlResolver = Callable[[], Union[str, None, Awaitable[Union[str, None]]]]


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class PathFormat(str, Enum):
    """Presentation of resolved cache paths."""

    BARE = "bare"
    FILE_URI = "file_uri"

    def format(self, path: Path) -> str:
        """Render an on-disk path for callers."""
        if self is PathFormat.FILE_URI:
            return f"file://{path}"
        return str(path)


@dataclass(frozen=True)
class FileStat:
    """A file in the storage directory with its last-modified time (UTC)."""

    path: Path
    modified_at: datetime


@dataclass
class MaintenanceResult:
    """Outcome of a wipe or eviction.

    Maintenance never raises; this is the only place failures show up
    besides the logs.
    """

    deleted: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def record_failure(self, error: BaseException | str) -> None:
        self.failed += 1
        self.errors.append(str(error))
