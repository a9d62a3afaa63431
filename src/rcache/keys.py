"""
Cache key derivation.

A key is serialized to canonical JSON (orjson, sorted map keys, compact,
UTF-8), hashed with SipHash-1-3 under a zero key, and formatted as
``"<namespace>:cache_<hash>"``. The hash input is the JSON bytes followed by
a 0xff terminator, the same bytes a Rust ``DefaultHasher`` consumes when
hashing a string, so ids agree with records written by the earlier service.

Distinct keys that collide share one record; collisions are not detected.
"""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import BaseModel

from rcache.exceptions import SerializationError

_MASK = 0xFFFFFFFFFFFFFFFF
_CANONICAL = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS


def _rotl(x: int, b: int) -> int:
    return ((x << b) | (x >> (64 - b))) & _MASK


def _sipround(v0: int, v1: int, v2: int, v3: int) -> tuple[int, int, int, int]:
    v0 = (v0 + v1) & _MASK
    v1 = _rotl(v1, 13) ^ v0
    v0 = _rotl(v0, 32)
    v2 = (v2 + v3) & _MASK
    v3 = _rotl(v3, 16) ^ v2
    v0 = (v0 + v3) & _MASK
    v3 = _rotl(v3, 21) ^ v0
    v2 = (v2 + v1) & _MASK
    v1 = _rotl(v1, 17) ^ v2
    v2 = _rotl(v2, 32)
    return v0, v1, v2, v3


def siphash13(data: bytes, k0: int = 0, k1: int = 0) -> int:
    """SipHash-1-3 of ``data`` as an unsigned 64-bit integer."""
    v0 = k0 ^ 0x736F6D6570736575
    v1 = k1 ^ 0x646F72616E646F6D
    v2 = k0 ^ 0x6C7967656E657261
    v3 = k1 ^ 0x7465646279746573

    length = len(data)
    tail = length - (length % 8)
    for offset in range(0, tail, 8):
        m = int.from_bytes(data[offset : offset + 8], "little")
        v3 ^= m
        v0, v1, v2, v3 = _sipround(v0, v1, v2, v3)
        v0 ^= m

    b = ((length & 0xFF) << 56) | int.from_bytes(data[tail:], "little")
    v3 ^= b
    v0, v1, v2, v3 = _sipround(v0, v1, v2, v3)
    v0 ^= b

    v2 ^= 0xFF
    for _ in range(3):
        v0, v1, v2, v3 = _sipround(v0, v1, v2, v3)
    return v0 ^ v1 ^ v2 ^ v3


def _default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def canonical_key(key: Any) -> bytes:
    """Serialize a key to its canonical JSON bytes.

    Map key order never affects the output.

    Raises:
        SerializationError: If the key has no JSON representation.
    """
    try:
        return orjson.dumps(key, default=_default, option=_CANONICAL)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise SerializationError(
            f"Cache key is not serializable: {e}",
            {"kind": "key", "type": type(key).__name__},
        ) from e


def key_hash(key: Any) -> int:
    """64-bit hash of a key's canonical serialization."""
    return siphash13(canonical_key(key) + b"\xff")


def record_ident(key: Any) -> str:
    """Record id part for a key: ``cache_<hash>``."""
    return f"cache_{key_hash(key)}"


def record_id(namespace: str, key: Any) -> str:
    """Full storage identifier: ``<namespace>:cache_<hash>``."""
    return f"{namespace}:{record_ident(key)}"
