"""
Pytest configuration and fixtures for cache tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from rcache.config import Settings, clear_settings_cache
from rcache.connection import ConnectionManager
from rcache.store import MemoryStore


class FakeClock:
    """Controllable UTC clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_settings(**overrides: object) -> Settings:
    """Settings that ignore .env and connect to a private memory store."""
    values: dict[str, object] = {
        "STORE_URL": "memory://",
        "STORE_NAMESPACE": "test_ns",
        "STORE_DATABASE": "test_db",
        "CONNECT_BASE_DELAY_MS": 0,
        "CONNECT_TIMEOUT_SECONDS": 1.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "STORE_URL": "memory://",
        "STORE_NAMESPACE": "test_ns",
        "STORE_DATABASE": "test_db",
        "STORE_USER": "tester",
        "STORE_PASS": "s3cret-password",
        "CONNECT_MAX_RETRIES": "3",
        "CONNECT_BASE_DELAY_MS": "0",
        "CONNECT_TIMEOUT_SECONDS": "2",
        "CACHE_DEFAULT_TTL_SECONDS": "60",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance loaded from the mock environment."""
    from rcache.config import get_settings

    clear_settings_cache()
    yield get_settings()
    clear_settings_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    """A private memory store the tests can inspect directly."""
    return MemoryStore()


@pytest.fixture
async def connection(
    memory_store: MemoryStore,
) -> AsyncGenerator[ConnectionManager, None]:
    """Connection manager whose shared handle is ``memory_store``."""
    manager = ConnectionManager(make_settings(), store_factory=lambda url: memory_store)
    yield manager
    await manager.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
