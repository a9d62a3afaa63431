"""
Connection manager for the backing store.

Produces one shared, ready-to-use store handle per manager:
- The first acquire() starts a single initialization task; concurrent
  callers await that same task, so exactly one attempt sequence runs.
- Each attempt opens the store, signs in and selects namespace/database
  under a timeout. Failed attempts are retried with exponential backoff
  (tenacity) up to CONNECT_MAX_RETRIES.
- Exhausted retries are memoized: every later acquire() raises the same
  StoreConnectionError until close() resets the manager.
- Every acquisition re-asserts the namespace/database scope, because the
  handle is shared with callers that may have changed it.

The manager is passed explicitly to caches rather than living in module
state, so tests can run isolated managers side by side.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rcache.config import Settings, get_settings
from rcache.exceptions import StoreConnectionError
from rcache.logging import get_logger, log_context
from rcache.store import BackingStore, open_store

logger = get_logger(__name__)

StoreFactory = Callable[[str], BackingStore]
Sleep = Callable[[float], Awaitable[None]]


class ConnectionManager:
    """Memoized, retrying access to a shared backing store handle."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store_factory: StoreFactory | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize connection manager.

        Args:
            settings: Connection settings. Defaults to get_settings().
            store_factory: Builds an unconnected store from STORE_URL.
            sleep: Coroutine used for backoff delays.
        """
        self.settings = settings or get_settings()
        self._store_factory = store_factory or partial(
            open_store, timeout=self.settings.CONNECT_TIMEOUT_SECONDS
        )
        self._sleep = sleep
        self._init_task: asyncio.Task[BackingStore] | None = None
        self.attempts = 0

    @property
    def url(self) -> str:
        return self.settings.STORE_URL

    async def acquire(self) -> BackingStore:
        """Return the shared store handle, connecting on first use.

        Raises:
            StoreConnectionError: If the store could not be reached within
                the retry budget (now or on an earlier call).
        """
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())

        # A cancelled caller must not cancel the initialization other callers share
        handle = await asyncio.shield(self._init_task)

        try:
            await handle.use_scope(
                self.settings.STORE_NAMESPACE, self.settings.STORE_DATABASE
            )
        except Exception as e:
            raise StoreConnectionError(
                "Failed to select store scope",
                {
                    "namespace": self.settings.STORE_NAMESPACE,
                    "database": self.settings.STORE_DATABASE,
                },
            ) from e
        return handle

    async def connect_isolated(self) -> BackingStore:
        """Open a fresh, non-shared connection (single attempt, no retries).

        For background workers that must not share or re-scope the handle
        returned by acquire(). The caller owns and closes the result.
        """
        try:
            return await self._connect_once()
        except Exception as e:
            raise StoreConnectionError(
                "Failed to open isolated connection", {"url": self.url}
            ) from e

    async def health(self) -> str:
        """Check the store over an isolated connection.

        Returns:
            The store's version string.
        """
        store = await self.connect_isolated()
        try:
            return await store.version()
        except Exception as e:
            raise StoreConnectionError("Health check failed", {"url": self.url}) from e
        finally:
            await store.close()

    async def close(self) -> None:
        """Close the shared handle and forget any memoized result or failure."""
        task, self._init_task = self._init_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
            return
        if not task.cancelled() and task.exception() is None:
            await task.result().close()
            logger.info("Store connection closed", url=self.url)

    async def _initialize(self) -> BackingStore:
        settings = self.settings
        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.CONNECT_MAX_RETRIES),
            wait=wait_exponential(multiplier=settings.base_delay, exp_base=2),
            retry=retry_if_exception_type(Exception),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        self.attempts = 0

        with log_context(operation="connect"):
            try:
                async for attempt in retrying:
                    with attempt:
                        self.attempts = attempt.retry_state.attempt_number
                        store = await self._connect_once()
                        logger.info(
                            "Connected to backing store",
                            url=self.url,
                            attempts=self.attempts,
                        )
                        return store
            except Exception as e:
                logger.error(
                    "Giving up on backing store connection",
                    url=self.url,
                    attempts=self.attempts,
                    error=str(e),
                )
                raise StoreConnectionError(
                    "Failed to connect to backing store",
                    {"url": self.url, "attempts": self.attempts},
                ) from e

        raise StoreConnectionError("Connection retries ended without a result", {"url": self.url})

    async def _connect_once(self) -> BackingStore:
        """One attempt: open, sign in and scope a store under the timeout."""
        settings = self.settings
        store = self._store_factory(settings.STORE_URL)
        try:
            async with asyncio.timeout(settings.CONNECT_TIMEOUT_SECONDS):
                await store.connect()
                await store.signin(settings.STORE_USER, settings.STORE_PASS)
                await store.use_scope(settings.STORE_NAMESPACE, settings.STORE_DATABASE)
        except BaseException:
            await self._discard(store)
            raise
        return store

    async def _discard(self, store: BackingStore) -> None:
        try:
            await store.close()
        except Exception as e:
            logger.debug("Error closing failed store connection", error=str(e))

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Store connection attempt {retry_state.attempt_number} failed, "
            f"retrying in {delay:.2f}s",
            url=self.url,
            error=repr(error),
        )
