"""Mapping protocols — explicit JSON-to-model decoding, no reflection."""

from __future__ import annotations

from typing import Any, Protocol, Type, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Decodable(Protocol):
    """A model that knows how to build itself from generic JSON.

    ``decode`` raises ``pipeline.errors.DecodeError`` when ``data`` does not
    have the expected shape.
    """

    @classmethod
    def decode(cls, data: Any) -> Decodable: ...


@runtime_checkable
class ModelMapper(Protocol):
    """Turns parsed JSON into typed models. Returns ``None`` when it can't."""

    def map(self, model: Type[T], data: Any) -> T | None: ...

    def map_array(self, model: Type[T], data: Any) -> list[T] | None: ...
