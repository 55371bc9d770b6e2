"""
Pytest configuration and fixtures for asset cache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, AsyncGenerator, Generator
from unittest.mock import patch

import httpx
import pytest

from assetcache.cache.registry import CacheRegistry
from assetcache.config import Settings, clear_settings_cache
from assetcache.storage.local import LocalStorage
from assetcache.types import FileStat


class FakeServer:
    """Serves canned responses through httpx.MockTransport and records hits."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes]] = {}
        self.requests: list[str] = []

    def add(self, url: str, content: bytes, status_code: int = 200) -> None:
        self.routes[url] = (status_code, content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status_code, content = self.routes.get(url, (404, b"not found"))
        return httpx.Response(status_code, content=content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class ScriptedStorage(LocalStorage):
    """LocalStorage with hooks for injecting backend misbehaviour."""

    def __init__(self, base_dir: Path, **kwargs: Any) -> None:
        super().__init__(base_dir, **kwargs)
        self.download_calls: list[tuple[str, Path]] = []
        self.download_outcome: bool | None = None
        self.partial_bytes: bytes | None = None
        self.fail_delete_for: set[str] = set()
        self.fail_list = False

    async def download_to_file(self, url: str, destination: Path) -> bool:
        self.download_calls.append((url, destination))
        if self.partial_bytes is not None:
            # Backend that leaves a truncated file behind on failure
            destination.write_bytes(self.partial_bytes)
            return False
        if self.download_outcome is not None:
            return self.download_outcome
        return await super().download_to_file(url, destination)

    async def delete_recursive(self, path: Path) -> None:
        if path.name in self.fail_delete_for:
            raise PermissionError(f"cannot delete {path.name}")
        await super().delete_recursive(path)

    async def list_directory(self, path: Path) -> list[FileStat]:
        if self.fail_list:
            raise OSError("listing failed")
        return await super().list_directory(path)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
async def storage(
    temp_dir: Path, fake_server: FakeServer
) -> AsyncGenerator[ScriptedStorage, None]:
    """Local storage rooted in temp_dir with all HTTP served by fake_server."""
    store = ScriptedStorage(temp_dir / "documents", transport=fake_server.transport)
    yield store
    await store.aclose()


@pytest.fixture
def registry(storage: ScriptedStorage) -> CacheRegistry:
    return CacheRegistry(storage, directory_name="asset-cache")


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "ASSETCACHE_BASE_DIR": str(temp_dir / "documents"),
        "ASSETCACHE_DIRECTORY_NAME": "test-cache",
        "ASSETCACHE_PATH_FORMAT": "bare",
        "ASSETCACHE_DOWNLOAD_TIMEOUT_SECONDS": "5",
        "ASSETCACHE_DEFAULT_MAX_AGE_DAYS": "7",
        "ASSETCACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    from assetcache.config import get_settings

    clear_settings_cache()
    yield get_settings()
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
