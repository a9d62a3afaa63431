"""
Custom exception hierarchy for the cache.

All exceptions inherit from RCacheError, which provides optional context
for structured error handling and logging. Cache operations raise only
CacheError subclasses; the underlying exception is chained as __cause__.
"""

from __future__ import annotations

from typing import Any


class RCacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(RCacheError):
    """Raised when configuration is invalid.

    Examples:
        - Unsupported STORE_URL scheme
        - Malformed SQLite path
    """

    pass


class CacheError(RCacheError):
    """Single error type surfaced by cache and connection operations.

    Callers catch this to decide whether to fall back to computing a value
    directly. The concrete subclass names the cause.
    """

    pass


class StoreConnectionError(CacheError):
    """Raised when the backing store cannot be reached or signed in to.

    Context should include:
        - url: The connection target
        - attempts: Number of attempts made
    """

    pass


class SerializationError(CacheError):
    """Raised when a key or value cannot be (de)serialized.

    Context should include:
        - namespace: The cache namespace
        - kind: "key" or "value"
    """

    pass


class DatabaseError(CacheError):
    """Raised when the backing store rejects or fails a well-formed request.

    Context should include:
        - table: The table the request targeted
        - record_id: The record identifier, where applicable
    """

    pass
