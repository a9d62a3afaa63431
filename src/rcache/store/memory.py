"""
In-memory backing store.

Dict-backed store used for tests and single-process deployments. Content is
round-tripped through orjson on every write and read so callers never share
mutable state with the store, matching what a networked store would do.
"""

from __future__ import annotations

from typing import Any

import orjson

from rcache.exceptions import DatabaseError
from rcache.store.base import BackingStore, Record

# Named memory stores (memory://name) share records within a process
_SHARED: dict[str, dict[tuple[str, str, str, str], bytes]] = {}


class MemoryStore(BackingStore):
    """Dict-backed store keyed by (namespace, database, table, id)."""

    def __init__(self, name: str | None = None) -> None:
        """Initialize memory store.

        Args:
            name: Shared store name. Stores with the same name see the same
                records; None gives a private store.
        """
        self.name = name
        if name:
            self._records = _SHARED.setdefault(name, {})
        else:
            self._records = {}
        self.connected = False
        self.user: str | None = None

    async def connect(self) -> None:
        self.connected = True

    async def signin(self, user: str, password: str) -> None:
        self.user = user

    async def close(self) -> None:
        self.connected = False

    async def version(self) -> str:
        return "memory-1"

    def _key(self, table: str, ident: str) -> tuple[str, str, str, str]:
        if not self.connected:
            raise DatabaseError("Memory store is not connected", {"table": table})
        namespace, database = self.scope
        return namespace, database, table, ident

    @staticmethod
    def _dump(content: Record) -> bytes:
        try:
            return orjson.dumps(content)
        except TypeError as e:
            raise DatabaseError(f"Record content is not JSON compatible: {e}") from e

    @staticmethod
    def _load(raw: bytes | None) -> Record | None:
        if raw is None:
            return None
        data: dict[str, Any] = orjson.loads(raw)
        return data

    async def select(self, table: str, ident: str) -> Record | None:
        return self._load(self._records.get(self._key(table, ident)))

    async def create(self, table: str, ident: str, content: Record) -> Record:
        key = self._key(table, ident)
        if key in self._records:
            raise DatabaseError(
                "Record already exists", {"table": table, "record_id": ident}
            )
        self._records[key] = self._dump(content)
        return self._load(self._records[key]) or {}

    async def upsert(self, table: str, ident: str, content: Record) -> Record | None:
        key = self._key(table, ident)
        before = self._records.get(key)
        self._records[key] = self._dump(content)
        return self._load(before)

    async def delete(self, table: str, ident: str) -> Record | None:
        return self._load(self._records.pop(self._key(table, ident), None))

    def __len__(self) -> int:
        return len(self._records)
