"""
rcache: async read-through cache with TTL expiry over a document store.
"""

from rcache.cache import AsyncCache, CacheBuilder, JSONCodec, ModelCodec, cached
from rcache.connection import ConnectionManager
from rcache.exceptions import (
    CacheError,
    DatabaseError,
    SerializationError,
    StoreConnectionError,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncCache",
    "CacheBuilder",
    "CacheError",
    "ConnectionManager",
    "DatabaseError",
    "JSONCodec",
    "ModelCodec",
    "SerializationError",
    "StoreConnectionError",
    "cached",
    "__version__",
]
