"""
Tests for backing store implementations.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator

import aiosqlite
import pytest

from rcache.exceptions import ConfigurationError, DatabaseError
from rcache.store import (
    BackingStore,
    MemoryStore,
    SQLiteStore,
    SurrealHTTPStore,
    open_store,
)


async def _ready(store: BackingStore, namespace: str = "ns", database: str = "db") -> BackingStore:
    await store.connect()
    await store.signin("root", "root")
    await store.use_scope(namespace, database)
    return store


@pytest.fixture(params=["memory", "sqlite"])
async def store(request: pytest.FixtureRequest, temp_dir: Path) -> AsyncGenerator[BackingStore, None]:
    """Each local store implementation, connected and scoped."""
    if request.param == "memory":
        backing: BackingStore = MemoryStore()
    else:
        backing = SQLiteStore(temp_dir / "store.db")
    await _ready(backing)
    yield backing
    await backing.close()


class TestStoreContract:
    """Behavior every backing store shares."""

    @pytest.mark.asyncio
    async def test_select_missing_returns_none(self, store: BackingStore) -> None:
        assert await store.select("tbl", "missing") is None

    @pytest.mark.asyncio
    async def test_upsert_returns_previous_content(self, store: BackingStore) -> None:
        assert await store.upsert("tbl", "a", {"value": 1}) is None
        assert await store.upsert("tbl", "a", {"value": 2}) == {"value": 1}
        assert await store.select("tbl", "a") == {"value": 2}

    @pytest.mark.asyncio
    async def test_delete_returns_content(self, store: BackingStore) -> None:
        await store.upsert("tbl", "a", {"value": {"nested": [1, 2]}})

        assert await store.delete("tbl", "a") == {"value": {"nested": [1, 2]}}
        assert await store.delete("tbl", "a") is None
        assert await store.select("tbl", "a") is None

    @pytest.mark.asyncio
    async def test_create_rejects_existing_record(self, store: BackingStore) -> None:
        await store.create("tbl", "a", {"value": 1})

        with pytest.raises(DatabaseError):
            await store.create("tbl", "a", {"value": 2})

        assert await store.select("tbl", "a") == {"value": 1}

    @pytest.mark.asyncio
    async def test_tables_are_separate(self, store: BackingStore) -> None:
        await store.upsert("one", "a", {"value": 1})
        assert await store.select("two", "a") is None

    @pytest.mark.asyncio
    async def test_scope_isolates_records(self, store: BackingStore) -> None:
        await store.upsert("tbl", "a", {"value": "first"})

        await store.use_scope("ns", "other_db")
        assert await store.select("tbl", "a") is None
        await store.upsert("tbl", "a", {"value": "second"})

        await store.use_scope("ns", "db")
        assert await store.select("tbl", "a") == {"value": "first"}

    @pytest.mark.asyncio
    async def test_version_is_reported(self, store: BackingStore) -> None:
        assert await store.version()


class TestMemoryStore:
    """Memory-store specifics."""

    @pytest.mark.asyncio
    async def test_named_stores_share_records(self) -> None:
        writer = await _ready(MemoryStore("test_named_share"))
        reader = await _ready(MemoryStore("test_named_share"))

        await writer.upsert("tbl", "a", {"value": 1})
        assert await reader.select("tbl", "a") == {"value": 1}

    @pytest.mark.asyncio
    async def test_private_stores_do_not_share(self) -> None:
        first = await _ready(MemoryStore())
        second = await _ready(MemoryStore())

        await first.upsert("tbl", "a", {"value": 1})
        assert await second.select("tbl", "a") is None

    @pytest.mark.asyncio
    async def test_returned_content_is_a_copy(self) -> None:
        store = await _ready(MemoryStore())
        content = {"value": [1]}
        await store.upsert("tbl", "a", content)
        content["value"].append(2)

        fetched = await store.select("tbl", "a")
        assert fetched == {"value": [1]}

    @pytest.mark.asyncio
    async def test_requires_connection(self) -> None:
        store = MemoryStore()
        await store.use_scope("ns", "db")

        with pytest.raises(DatabaseError):
            await store.select("tbl", "a")


class TestSQLiteStore:
    """SQLite-store specifics."""

    @pytest.mark.asyncio
    async def test_records_survive_reconnect(self, temp_dir: Path) -> None:
        path = temp_dir / "persist.db"
        first = await _ready(SQLiteStore(path))
        await first.upsert("tbl", "a", {"value": "kept"})
        await first.close()

        second = await _ready(SQLiteStore(path))
        assert await second.select("tbl", "a") == {"value": "kept"}
        assert await second.count("tbl") == 1
        await second.close()

    @pytest.mark.asyncio
    async def test_corrupt_row_does_not_block_later_writes(self, temp_dir: Path) -> None:
        path = temp_dir / "corrupt.db"
        store = await _ready(SQLiteStore(path))
        await store.upsert("tbl", "bad", {"value": 1})
        async with aiosqlite.connect(path) as raw:
            await raw.execute("UPDATE records SET content = 'not json' WHERE id = 'bad'")
            await raw.commit()

        with pytest.raises(DatabaseError, match="not valid JSON"):
            await store.upsert("tbl", "bad", {"value": 2})
        with pytest.raises(DatabaseError):
            await store.delete("tbl", "bad")
        with pytest.raises(DatabaseError):
            await store.select("tbl", "bad")

        assert await store.upsert("tbl", "good", {"value": 3}) is None
        assert await store.delete("tbl", "good") == {"value": 3}
        await store.close()

    @pytest.mark.asyncio
    async def test_requires_connection(self, temp_dir: Path) -> None:
        store = SQLiteStore(temp_dir / "never.db")
        await store.use_scope("ns", "db")

        with pytest.raises(RuntimeError, match="not connected"):
            await store.select("tbl", "a")


class TestOpenStore:
    """Test URL dispatch."""

    def test_memory_url(self) -> None:
        store = open_store("memory://")
        assert isinstance(store, MemoryStore)
        assert store.name is None

    def test_named_memory_url(self) -> None:
        store = open_store("memory://shared")
        assert isinstance(store, MemoryStore)
        assert store.name == "shared"

    def test_sqlite_relative_path(self) -> None:
        store = open_store("sqlite:///data/cache.db")
        assert isinstance(store, SQLiteStore)
        assert store.db_path == "data/cache.db"

    def test_sqlite_absolute_path(self) -> None:
        store = open_store("sqlite:////var/lib/cache.db")
        assert isinstance(store, SQLiteStore)
        assert store.db_path == "/var/lib/cache.db"

    def test_sqlite_in_memory(self) -> None:
        store = open_store("sqlite:///:memory:")
        assert isinstance(store, SQLiteStore)
        assert store.db_path == ":memory:"

    def test_http_url(self) -> None:
        store = open_store("http://localhost:8000/", timeout=5.0)
        assert isinstance(store, SurrealHTTPStore)
        assert store.base_url == "http://localhost:8000"
        assert store.timeout == 5.0

    @pytest.mark.parametrize("url", ["redis://localhost", "sqlite://", "http://"])
    def test_bad_urls_raise(self, url: str) -> None:
        with pytest.raises(ConfigurationError):
            open_store(url)
