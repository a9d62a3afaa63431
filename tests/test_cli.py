"""
Tests for the command line interface.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from typer.testing import CliRunner

from conftest import make_settings
from rcache import __version__
from rcache.cache import AsyncCache
from rcache.cli.main import app
from rcache.connection import ConnectionManager

runner = CliRunner()

SHARED_URL = "memory://cli_tests"


async def _seed(namespace: str, key: object, value: object) -> None:
    manager = ConnectionManager(make_settings(STORE_URL=SHARED_URL))
    cache = await AsyncCache.new(namespace, timedelta(minutes=10)).build(manager)
    await cache.set(key, value)
    await manager.close()


@pytest.fixture
def cli_env(mock_env_vars: dict[str, str], monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Environment pointing the CLI at a named memory store."""
    monkeypatch.setenv("STORE_URL", SHARED_URL)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return mock_env_vars


class TestInfoCommands:
    """Commands that do not touch cached entries."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_config_redacts_password(self, cli_env: dict[str, str]) -> None:
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "STORE_PASS" in result.output
        assert "***" in result.output
        assert "s3cret-password" not in result.output

    def test_config_reports_invalid_settings(
        self, cli_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STORE_URL", "redis://localhost")

        result = runner.invoke(app, ["config"])

        assert result.exit_code == 1
        assert "invalid" in result.output

    def test_health(self, cli_env: dict[str, str]) -> None:
        result = runner.invoke(app, ["health"])

        assert result.exit_code == 0
        assert "memory-1" in result.output

    def test_health_unreachable_store(
        self, cli_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STORE_URL", "sqlite://")

        result = runner.invoke(app, ["health"])

        assert result.exit_code == 1
        assert "Unhealthy" in result.output


class TestEntryCommands:
    """get and remove."""

    def test_get_shows_cached_value(self, cli_env: dict[str, str]) -> None:
        asyncio.run(_seed("users", "user-42", {"name": "Ada"}))

        result = runner.invoke(app, ["get", "users", '"user-42"'])

        assert result.exit_code == 0
        assert "Ada" in result.output

    def test_get_missing_key(self, cli_env: dict[str, str]) -> None:
        result = runner.invoke(app, ["get", "users", '"nobody"'])

        assert result.exit_code == 0
        assert "not cached" in result.output

    def test_remove_evicts(self, cli_env: dict[str, str]) -> None:
        asyncio.run(_seed("sessions", ["s", 1], "token-abc"))

        removed = runner.invoke(app, ["remove", "sessions", '["s", 1]'])
        again = runner.invoke(app, ["get", "sessions", '["s", 1]'])

        assert removed.exit_code == 0
        assert "token-abc" in removed.output
        assert "not cached" in again.output

    def test_key_must_be_json(self, cli_env: dict[str, str]) -> None:
        result = runner.invoke(app, ["get", "users", "user-42"])

        assert result.exit_code == 2

    def test_invalid_namespace(self, cli_env: dict[str, str]) -> None:
        result = runner.invoke(app, ["get", "bad:namespace", '"k"'])

        assert result.exit_code == 1
        assert "Failed to get" in result.output
