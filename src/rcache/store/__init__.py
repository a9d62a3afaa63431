"""
Backing stores for the cache.

- BackingStore: abstract record store interface (base.py)
- MemoryStore: in-process dict store (memory.py)
- SQLiteStore: aiosqlite-backed local store (sqlite.py)
- SurrealHTTPStore: SurrealDB over HTTP (surreal.py)
- open_store(): pick an implementation from a connection URL
"""

from __future__ import annotations

from urllib.parse import urlparse

from rcache.exceptions import ConfigurationError
from rcache.store.base import BackingStore, Record
from rcache.store.memory import MemoryStore
from rcache.store.sqlite import SQLiteStore
from rcache.store.surreal import SurrealHTTPStore


def open_store(url: str, timeout: float = 30.0) -> BackingStore:
    """Create an unconnected store for a connection URL.

    Supported forms:
        memory://            private in-process store
        memory://name        in-process store shared by name
        sqlite:///rel.db     SQLite file relative to the working directory
        sqlite:////abs.db    SQLite file at an absolute path
        sqlite:///:memory:   in-memory SQLite database
        http(s)://host:port  SurrealDB server

    Raises:
        ConfigurationError: If the scheme is unknown or the URL is malformed.
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()

    if scheme == "memory":
        return MemoryStore(parsed.netloc or None)

    if scheme == "sqlite":
        path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
        if not path:
            raise ConfigurationError("SQLite URL has no database path", {"url": url})
        return SQLiteStore(path)

    if scheme in ("http", "https"):
        if not parsed.netloc:
            raise ConfigurationError("SurrealDB URL has no host", {"url": url})
        return SurrealHTTPStore(url, timeout=timeout)

    raise ConfigurationError(f"Unsupported store URL scheme: {scheme!r}", {"url": url})


__all__ = [
    "BackingStore",
    "MemoryStore",
    "Record",
    "SQLiteStore",
    "SurrealHTTPStore",
    "open_store",
]
