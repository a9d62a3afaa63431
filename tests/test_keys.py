"""
Tests for cache key derivation.
"""

from __future__ import annotations

import re

import pytest
from pydantic import BaseModel

from rcache.exceptions import SerializationError
from rcache.keys import canonical_key, key_hash, record_id, siphash13


class UserKey(BaseModel):
    org: str
    user_id: int


class TestCanonicalKey:
    """Test canonical key serialization."""

    def test_string_key_is_json_string(self) -> None:
        assert canonical_key("test_key") == b'"test_key"'

    def test_compact_output(self) -> None:
        assert canonical_key({"a": [1, 2]}) == b'{"a":[1,2]}'

    def test_map_order_does_not_matter(self) -> None:
        first = {"b": 2, "a": {"y": 1, "x": 0}}
        second = {"a": {"x": 0, "y": 1}, "b": 2}
        assert canonical_key(first) == canonical_key(second)

    def test_non_ascii_is_utf8(self) -> None:
        assert canonical_key("café") == '"café"'.encode("utf-8")

    def test_pydantic_model_matches_equivalent_dict(self) -> None:
        model = UserKey(user_id=7, org="acme")
        assert canonical_key(model) == canonical_key({"user_id": 7, "org": "acme"})

    def test_sets_are_ordered(self) -> None:
        assert canonical_key({3, 1, 2}) == canonical_key([1, 2, 3])

    def test_unserializable_key_raises(self) -> None:
        with pytest.raises(SerializationError) as exc_info:
            canonical_key(object())

        assert exc_info.value.context["kind"] == "key"


class TestKeyHash:
    """Test hashing and record ids."""

    def test_hash_is_deterministic(self) -> None:
        assert key_hash(["slow_result", 2, 3]) == key_hash(["slow_result", 2, 3])

    def test_hash_is_unsigned_64_bit(self) -> None:
        for key in ["", "a", "test_key", {"n": 1}, list(range(50))]:
            value = key_hash(key)
            assert 0 <= value < 2**64

    def test_distinct_keys_hash_differently(self) -> None:
        hashes = {key_hash(f"key-{i}") for i in range(500)}
        assert len(hashes) == 500

    def test_hash_covers_terminator(self) -> None:
        """The key bytes are hashed with a trailing 0xff byte."""
        assert key_hash("x") == siphash13(b'"x"\xff')
        assert key_hash("x") != siphash13(b'"x"')

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("test_key", 11943952637825087913),
            ("", 3553398539935423623),
            (["slow_result", 2, 3], 12027996390457286719),
            ("café", 15280850165087317161),
            ({"b": "0123456789abcdef", "a": [1, 2]}, 17742183451585051397),
        ],
    )
    def test_hash_matches_rust_default_hasher(self, key: object, expected: int) -> None:
        """Values produced by Rust's DefaultHasher over the same JSON string."""
        assert key_hash(key) == expected

    def test_siphash_depends_on_key(self) -> None:
        assert siphash13(b"abc") != siphash13(b"abc", k0=1)

    def test_record_id_format(self) -> None:
        rid = record_id("test_cache", "test_key")
        assert re.fullmatch(r"test_cache:cache_\d+", rid)
        assert rid == f"test_cache:cache_{key_hash('test_key')}"

    def test_logically_equal_keys_share_record_id(self) -> None:
        assert record_id("ns", {"a": 1, "b": 2}) == record_id("ns", {"b": 2, "a": 1})
