"""
Memoization decorator for expensive async functions.

    @cached(cache, key=lambda a, b: f"{a}-{b}")
    async def slow_product(a: int, b: int) -> int:
        ...

A hit returns the stored result; a miss awaits the function, stores the
result and returns it. The cache may also be given as an async factory,
which runs once on first use.

Cache failures propagate by default (on_error="raise"). With
on_error="compute" they are logged and the function result is returned
uncached. Results equal to None are indistinguishable from misses and are
recomputed on every call.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Literal, ParamSpec, TypeVar

from rcache.cache.ttl_cache import AsyncCache
from rcache.exceptions import CacheError
from rcache.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

CacheSource = AsyncCache[Any, Any] | Callable[[], Awaitable[AsyncCache[Any, Any]]]
OnError = Literal["raise", "compute"]


class _LazyCache:
    """Resolves a cache or cache factory once, sharing the in-flight build."""

    def __init__(self, source: CacheSource) -> None:
        self._cache: AsyncCache[Any, Any] | None = None
        self._factory: Callable[[], Awaitable[AsyncCache[Any, Any]]] | None = None
        self._task: asyncio.Task[AsyncCache[Any, Any]] | None = None
        if isinstance(source, AsyncCache):
            self._cache = source
        else:
            self._factory = source

    async def get(self) -> AsyncCache[Any, Any]:
        if self._cache is not None:
            return self._cache
        if self._task is None:
            assert self._factory is not None
            self._task = asyncio.ensure_future(self._factory())
        try:
            self._cache = await asyncio.shield(self._task)
        except CacheError:
            # Let the next call try building again
            self._task = None
            raise
        return self._cache


def default_key(func: Callable[..., Any]) -> Callable[..., Any]:
    """Key from the function's qualified name and its arguments."""

    def make_key(*args: Any, **kwargs: Any) -> Any:
        return [func.__qualname__, list(args), sorted(kwargs.items())]

    return make_key


def cached(
    cache: CacheSource,
    *,
    key: Callable[..., Any] | None = None,
    on_error: OnError = "raise",
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Memoize an async function in ``cache``.

    Args:
        cache: An AsyncCache, or an async factory returning one.
        key: Converts the call arguments to a cache key. Defaults to the
            function's qualified name plus its arguments.
        on_error: "raise" to propagate CacheError, "compute" to fall back to
            calling the function directly.
    """
    if on_error not in ("raise", "compute"):
        raise ValueError(f"on_error must be 'raise' or 'compute', got {on_error!r}")

    lazy = _LazyCache(cache)

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        make_key = key or default_key(func)

        def handle(e: CacheError, action: str) -> None:
            if on_error == "raise":
                raise e
            logger.warning(
                f"Cache {action} failed for {func.__qualname__}, computing directly",
                error=str(e),
            )

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            cache_key = make_key(*args, **kwargs)

            try:
                target = await lazy.get()
                hit = await target.get(cache_key)
            except CacheError as e:
                handle(e, "read")
                return await func(*args, **kwargs)

            if hit is not None:
                return hit

            result = await func(*args, **kwargs)
            try:
                await target.set(cache_key, result)
            except CacheError as e:
                handle(e, "write")
            return result

        async def invalidate(*args: Any, **kwargs: Any) -> Any:
            """Remove the memoized result for these arguments."""
            target = await lazy.get()
            return await target.remove(make_key(*args, **kwargs))

        wrapper.invalidate = invalidate  # type: ignore[attr-defined]
        return wrapper

    return decorator
