"""
Base classes for caching.

CacheProtocol is the contract business-logic code programs against:
get/set/remove over arbitrary serializable keys plus runtime control of the
entry lifetime and refresh-on-read policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class CacheProtocol(ABC, Generic[K, V]):
    """Abstract interface for cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get a live value, or None on a miss."""
        ...

    @abstractmethod
    async def set(self, key: K, value: V) -> V | None:
        """Store a value; return whatever value was stored before."""
        ...

    @abstractmethod
    async def remove(self, key: K) -> V | None:
        """Remove a value; return whatever value was stored."""
        ...

    @abstractmethod
    def lifespan(self) -> timedelta | None:
        """Current entry lifetime, or None when entries never expire."""
        ...

    @abstractmethod
    def set_lifespan(self, ttl: timedelta) -> timedelta | None:
        """Change the entry lifetime; return the previous one."""
        ...

    @abstractmethod
    def unset_lifespan(self) -> timedelta | None:
        """Make new entries never expire; return the previous lifetime."""
        ...

    @abstractmethod
    def set_refresh(self, refresh: bool) -> bool:
        """Toggle refresh-on-read; return the previous setting."""
        ...
