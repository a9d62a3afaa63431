"""
Base classes for backing stores.

A backing store is a key-value document store addressed by
(namespace, database, table, id). Record content is a JSON-compatible dict.
Stores raise DatabaseError for failed requests; connection and sign-in
failures may raise anything and are handled by the connection manager.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Record = dict[str, Any]


class BackingStore(ABC):
    """Abstract interface for backing store implementations."""

    namespace: str | None = None
    database: str | None = None

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying connection."""
        ...

    @abstractmethod
    async def signin(self, user: str, password: str) -> None:
        """Authenticate with root credentials."""
        ...

    async def use_scope(self, namespace: str, database: str) -> None:
        """Select the namespace and database subsequent requests run in."""
        self.namespace = namespace
        self.database = database

    @abstractmethod
    async def close(self) -> None:
        """Close the underlying connection."""
        ...

    @abstractmethod
    async def version(self) -> str:
        """Return a version string for the store (used for health checks)."""
        ...

    @abstractmethod
    async def select(self, table: str, ident: str) -> Record | None:
        """Get a record's content, or None if absent."""
        ...

    @abstractmethod
    async def create(self, table: str, ident: str, content: Record) -> Record:
        """Create a record. Fails if the record already exists."""
        ...

    @abstractmethod
    async def upsert(self, table: str, ident: str, content: Record) -> Record | None:
        """Create or overwrite a record; return the content stored before."""
        ...

    @abstractmethod
    async def delete(self, table: str, ident: str) -> Record | None:
        """Delete a record; return its content, or None if absent."""
        ...

    @property
    def scope(self) -> tuple[str, str]:
        """The (namespace, database) pair in use."""
        if self.namespace is None or self.database is None:
            raise RuntimeError(f"{type(self).__name__} has no scope. Call use_scope() first.")
        return self.namespace, self.database
