"""
Cache package.

This package provides:
- CacheProtocol: the get/set/remove contract (base.py)
- AsyncCache / CacheBuilder: keyed TTL cache over a backing store (ttl_cache.py)
- JSONCodec / ModelCodec: value (de)serialization (codec.py)
- cached(): memoization decorator for async functions (memoize.py)
"""

from rcache.cache.base import CacheProtocol
from rcache.cache.codec import JSONCodec, ModelCodec, ValueCodec
from rcache.cache.memoize import cached
from rcache.cache.ttl_cache import DEFAULT_TTL, AsyncCache, CacheBuilder

__all__ = [
    "DEFAULT_TTL",
    "AsyncCache",
    "CacheBuilder",
    "CacheProtocol",
    "JSONCodec",
    "ModelCodec",
    "ValueCodec",
    "cached",
]
