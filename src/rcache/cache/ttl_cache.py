"""
Keyed TTL cache over a backing store.

Each key maps to one record ``<namespace>:cache_<hash>`` holding the encoded
value and an absolute UTC expiry. Expiry is lazy: a get() that finds an
expired record deletes it and reports a miss; nothing sweeps in the
background. With refresh enabled, a hit rewrites the record with a new
expiry before returning the value it read.

There is no locking. Concurrent operations on one key are independent
round trips and the last write wins; a miss is never cached.

set() and remove() return whatever value was stored before, expired or not.
Only get() filters on expiry.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Generator, Generic

from pydantic import ValidationError as PydanticValidationError

from rcache.cache.base import CacheProtocol, K, V
from rcache.cache.codec import JSONCodec, ValueCodec
from rcache.connection import ConnectionManager
from rcache.exceptions import CacheError, ConfigurationError, DatabaseError, SerializationError
from rcache.keys import record_ident
from rcache.logging import get_logger, log_context
from rcache.store import BackingStore, Record
from rcache.types import CacheEntry, Clock, utc_now

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(seconds=3600)


def _normalize_ttl(ttl: timedelta | None) -> timedelta | None:
    """Zero means never expire and is stored as None."""
    if ttl is None:
        return None
    if ttl < timedelta(0):
        raise ValueError(f"Cache lifetime must not be negative: {ttl}")
    return ttl if ttl > timedelta(0) else None


@contextmanager
def _store_errors(namespace: str, ident: str) -> Generator[None, None, None]:
    """Surface store failures as DatabaseError, keeping CacheErrors as raised."""
    try:
        yield
    except CacheError:
        raise
    except Exception as e:
        raise DatabaseError(
            f"Backing store request failed: {e}",
            {"table": namespace, "record_id": ident},
        ) from e


class AsyncCache(CacheProtocol[K, V]):
    """TTL cache backed by a shared store connection.

    Build through ``AsyncCache.new(namespace, ttl)`` so connection failures
    surface at build time.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        namespace: str,
        ttl: timedelta | None = DEFAULT_TTL,
        refresh: bool = False,
        codec: ValueCodec[V] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._connection = connection
        self._namespace = namespace
        self._ttl = _normalize_ttl(ttl)
        self._refresh = refresh
        self._codec: ValueCodec[Any] = codec or JSONCodec()
        self._clock = clock

    @staticmethod
    def new(namespace: str, ttl: timedelta = DEFAULT_TTL) -> CacheBuilder[Any, Any]:
        """Start building a cache for ``namespace``."""
        return CacheBuilder(namespace, ttl)

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def refresh(self) -> bool:
        return self._refresh

    def record_id(self, key: K) -> str:
        """Storage identifier for ``key``."""
        return f"{self._namespace}:{record_ident(key)}"

    async def _store(self) -> BackingStore:
        return await self._connection.acquire()

    def _entry(self, ident: str, content: Record) -> CacheEntry:
        try:
            return CacheEntry.from_content(f"{self._namespace}:{ident}", content)
        except PydanticValidationError as e:
            raise SerializationError(
                "Stored cache entry is malformed",
                {"namespace": self._namespace, "record_id": ident},
            ) from e

    def _value(self, ident: str, content: Record | None) -> V | None:
        if content is None:
            return None
        return self._codec.decode(self._entry(ident, content).value)

    async def get(self, key: K) -> V | None:
        """Get a live value.

        Absent or expired entries are misses; an expired entry is deleted
        before returning. With refresh enabled a hit extends the entry's
        expiry to now + ttl (awaited before returning) and the value read
        before the refresh is returned.
        """
        ident = record_ident(key)
        now = self._clock()

        with log_context(namespace=self._namespace, operation="get"):
            store = await self._store()
            with _store_errors(self._namespace, ident):
                content = await store.select(self._namespace, ident)

            if content is None:
                logger.debug("Cache miss", record_id=ident)
                return None

            entry = self._entry(ident, content)
            if entry.is_expired(now):
                with _store_errors(self._namespace, ident):
                    await store.delete(self._namespace, ident)
                logger.debug("Cache entry expired", record_id=ident, expires_at=entry.expires_at)
                return None

            value: V = self._codec.decode(entry.value)

            if self._refresh:
                refreshed = entry.refreshed(self._ttl, now)
                with _store_errors(self._namespace, ident):
                    await store.upsert(self._namespace, ident, refreshed.to_content())
                logger.debug(
                    "Cache entry refreshed", record_id=ident, expires_at=refreshed.expires_at
                )

            logger.debug("Cache hit", record_id=ident)
            return value

    async def set(self, key: K, value: V) -> V | None:
        """Upsert a value expiring at now + ttl.

        Returns the value stored before the write, whether or not it had
        expired.
        """
        ident = record_ident(key)
        now = self._clock()
        encoded = self._codec.encode(value)
        entry = CacheEntry.create(f"{self._namespace}:{ident}", encoded, self._ttl, now)

        with log_context(namespace=self._namespace, operation="set"):
            store = await self._store()
            with _store_errors(self._namespace, ident):
                before = await store.upsert(self._namespace, ident, entry.to_content())
            logger.debug("Cache entry written", record_id=ident, expires_at=entry.expires_at)
            return self._value(ident, before)

    async def remove(self, key: K) -> V | None:
        """Delete an entry and return its value, whether or not it had expired."""
        ident = record_ident(key)

        with log_context(namespace=self._namespace, operation="remove"):
            store = await self._store()
            with _store_errors(self._namespace, ident):
                removed = await store.delete(self._namespace, ident)
            if removed is not None:
                logger.debug("Cache entry removed", record_id=ident)
            return self._value(ident, removed)

    def lifespan(self) -> timedelta | None:
        return self._ttl

    def set_lifespan(self, ttl: timedelta) -> timedelta | None:
        old_ttl = self._ttl
        self._ttl = _normalize_ttl(ttl)
        return old_ttl

    def unset_lifespan(self) -> timedelta | None:
        old_ttl = self._ttl
        self._ttl = None
        return old_ttl

    def set_refresh(self, refresh: bool) -> bool:
        old_refresh = self._refresh
        self._refresh = refresh
        return old_refresh


class CacheBuilder(Generic[K, V]):
    """Builder for AsyncCache.

    Example:
        cache = await (
            AsyncCache.new("prices", timedelta(seconds=60))
            .set_refresh(True)
            .build(connection)
        )
    """

    def __init__(self, namespace: str, ttl: timedelta = DEFAULT_TTL) -> None:
        if not namespace or ":" in namespace:
            raise ConfigurationError(
                "Cache namespace must be non-empty and must not contain ':'",
                {"namespace": namespace},
            )
        self.namespace = namespace
        self.ttl: timedelta | None = _normalize_ttl(ttl)
        self.refresh = False
        self.codec: ValueCodec[V] | None = None
        self.clock: Clock = utc_now

    def set_refresh(self, refresh: bool) -> CacheBuilder[K, V]:
        self.refresh = refresh
        return self

    def set_lifespan(self, ttl: timedelta) -> CacheBuilder[K, V]:
        self.ttl = _normalize_ttl(ttl)
        return self

    def with_codec(self, codec: ValueCodec[V]) -> CacheBuilder[K, V]:
        self.codec = codec
        return self

    def with_clock(self, clock: Clock) -> CacheBuilder[K, V]:
        self.clock = clock
        return self

    async def build(self, connection: ConnectionManager) -> AsyncCache[K, V]:
        """Connect and return the cache.

        Raises:
            StoreConnectionError: If the backing store is unreachable.
        """
        await connection.acquire()
        logger.debug(
            "Cache built",
            namespace=self.namespace,
            ttl=self.ttl.total_seconds() if self.ttl else None,
            refresh=self.refresh,
        )
        return AsyncCache(
            connection,
            self.namespace,
            ttl=self.ttl,
            refresh=self.refresh,
            codec=self.codec,
            clock=self.clock,
        )
