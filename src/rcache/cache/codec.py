"""
Value codecs.

A codec turns cached values into JSON-compatible content for the store and
back. JSONCodec accepts anything orjson can serialize and returns the
decoded JSON as-is; ModelCodec validates stored content into a declared type
(pydantic models, dataclasses, typed containers) through a TypeAdapter.
"""

from __future__ import annotations

from typing import Any, Generic, Protocol, TypeVar

import orjson
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from rcache.exceptions import SerializationError

V = TypeVar("V")
V_co = TypeVar("V_co", covariant=True)


class ValueCodec(Protocol[V_co]):
    """Encodes values for storage and decodes stored content."""

    def encode(self, value: Any) -> Any: ...

    def decode(self, raw: Any) -> V_co: ...


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


class JSONCodec:
    """Stores values as their JSON representation.

    Decoded values are plain JSON types (dict, list, str, int, float, bool,
    None), so a tuple comes back as a list.
    """

    def encode(self, value: Any) -> Any:
        try:
            return orjson.loads(orjson.dumps(value, default=_to_json))
        except (orjson.JSONEncodeError, TypeError) as e:
            raise SerializationError(
                f"Cache value is not serializable: {e}",
                {"kind": "value", "type": type(value).__name__},
            ) from e

    def decode(self, raw: Any) -> Any:
        return raw


class ModelCodec(Generic[V]):
    """Round-trips values of a declared type through a pydantic TypeAdapter."""

    def __init__(self, value_type: type[V] | Any) -> None:
        self.value_type = value_type
        self._adapter: TypeAdapter[V] = TypeAdapter(value_type)

    def encode(self, value: V) -> Any:
        try:
            return self._adapter.dump_python(value, mode="json")
        except PydanticSerializationError as e:
            raise SerializationError(
                f"Cache value does not match {self.value_type!r}: {e}",
                {"kind": "value", "type": type(value).__name__},
            ) from e

    def decode(self, raw: Any) -> V:
        try:
            return self._adapter.validate_python(raw)
        except PydanticValidationError as e:
            raise SerializationError(
                f"Stored value does not match {self.value_type!r}",
                {"kind": "value", "errors": e.error_count()},
            ) from e
