"""
SQLite-backed store using aiosqlite.

All records live in one table keyed by (namespace, database, tbl, id) with
JSON content. Each write runs in its own transaction, so the "before"
content returned by upsert and delete matches what was overwritten, and a
failed write never leaves a transaction open.
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import aiosqlite
import orjson

from rcache.exceptions import DatabaseError
from rcache.logging import get_logger
from rcache.store.base import BackingStore, Record

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    namespace TEXT NOT NULL,
    database TEXT NOT NULL,
    tbl TEXT NOT NULL,
    id TEXT NOT NULL,
    content TEXT NOT NULL,
    PRIMARY KEY (namespace, database, tbl, id)
)
"""


class SQLiteStore(BackingStore):
    """Persistent local store.

    SQLite has no users, so sign-in is accepted without verification.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize SQLite store.

        Args:
            db_path: Database file path, or ":memory:".
        """
        self.db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        # One write transaction at a time on the shared connection
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the database and create the schema."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute(SCHEMA)
        await self._db.commit()
        logger.info("SQLite store opened", db_path=self.db_path)

    async def signin(self, user: str, password: str) -> None:
        logger.debug("SQLite store ignores credentials", user=user)

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    async def version(self) -> str:
        return f"sqlite-{sqlite3.sqlite_version}"

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("SQLiteStore not connected. Call connect() first.")
        return self._db

    async def _fetch(
        self, db: aiosqlite.Connection, table: str, ident: str
    ) -> Record | None:
        namespace, database = self.scope
        async with db.execute(
            """
            SELECT content FROM records
            WHERE namespace = ? AND database = ? AND tbl = ? AND id = ?
            """,
            (namespace, database, table, ident),
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None
        try:
            return orjson.loads(row["content"])
        except orjson.JSONDecodeError as e:
            raise DatabaseError(
                "Stored record content is not valid JSON",
                {"table": table, "record_id": ident},
            ) from e

    @asynccontextmanager
    async def _write(
        self, action: str, table: str, ident: str
    ) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Run a write in its own transaction; any failure rolls it back."""
        db = self._conn()
        async with self._write_lock:
            try:
                await db.execute("BEGIN IMMEDIATE")
                yield db
                await db.commit()
            except sqlite3.IntegrityError as e:
                raise DatabaseError(
                    "Record already exists", {"table": table, "record_id": ident}
                ) from e
            except sqlite3.Error as e:
                raise DatabaseError(
                    f"{action} failed: {e}", {"table": table, "record_id": ident}
                ) from e
            finally:
                if db.in_transaction:
                    await db.rollback()

    async def select(self, table: str, ident: str) -> Record | None:
        db = self._conn()
        try:
            return await self._fetch(db, table, ident)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Select failed: {e}", {"table": table, "record_id": ident}
            ) from e

    async def create(self, table: str, ident: str, content: Record) -> Record:
        namespace, database = self.scope
        async with self._write("Create", table, ident) as db:
            await db.execute(
                "INSERT INTO records (namespace, database, tbl, id, content) "
                "VALUES (?, ?, ?, ?, ?)",
                (namespace, database, table, ident, orjson.dumps(content).decode()),
            )
        return content

    async def upsert(self, table: str, ident: str, content: Record) -> Record | None:
        namespace, database = self.scope
        async with self._write("Upsert", table, ident) as db:
            before = await self._fetch(db, table, ident)
            await db.execute(
                """
                INSERT INTO records (namespace, database, tbl, id, content)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (namespace, database, tbl, id)
                DO UPDATE SET content = excluded.content
                """,
                (namespace, database, table, ident, orjson.dumps(content).decode()),
            )
        return before

    async def delete(self, table: str, ident: str) -> Record | None:
        namespace, database = self.scope
        async with self._write("Delete", table, ident) as db:
            before = await self._fetch(db, table, ident)
            if before is not None:
                await db.execute(
                    """
                    DELETE FROM records
                    WHERE namespace = ? AND database = ? AND tbl = ? AND id = ?
                    """,
                    (namespace, database, table, ident),
                )
        return before

    async def count(self, table: str) -> int:
        """Count records in a table within the current scope."""
        db = self._conn()
        namespace, database = self.scope
        async with db.execute(
            "SELECT COUNT(*) FROM records WHERE namespace = ? AND database = ? AND tbl = ?",
            (namespace, database, table),
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0
