"""
Core types for the cache.

- CacheEntry: the single persisted record (value plus absolute expiry)
- utc_now() and the Clock type used to read it
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import AwareDatetime, BaseModel, ConfigDict

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """A cached value with its absolute expiry.

    ``expires_at`` is None only for entries written while the cache was set
    to never expire; such entries stay live until overwritten or removed.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    value: Any
    expires_at: AwareDatetime | None

    @classmethod
    def create(
        cls, record_id: str, value: Any, ttl: timedelta | None, now: datetime
    ) -> CacheEntry:
        """Build an entry expiring ``ttl`` after ``now`` (never if ttl is None)."""
        expires_at = now + ttl if ttl is not None else None
        return cls(id=record_id, value=value, expires_at=expires_at)

    @classmethod
    def from_content(cls, record_id: str, content: dict[str, Any]) -> CacheEntry:
        """Rebuild an entry from stored record content."""
        return cls(
            id=record_id,
            value=content.get("value"),
            expires_at=content.get("expires_at"),
        )

    def to_content(self) -> dict[str, Any]:
        """Record content as written to the store (the id is the record key)."""
        return {
            "value": self.value,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    def is_expired(self, now: datetime) -> bool:
        """Whether the entry is past its expiry at ``now``.

        Equality counts as live.
        """
        if self.expires_at is None:
            return False
        return now > self.expires_at

    def refreshed(self, ttl: timedelta | None, now: datetime) -> CacheEntry:
        """Copy of this entry with the same value and a new expiry."""
        return CacheEntry.create(self.id, self.value, ttl, now)
