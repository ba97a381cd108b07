"""Pydantic-backed mapping facility. Implements ModelMapper protocol."""

from __future__ import annotations

from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from observability.logger import get_logger
from pipeline.errors import DecodeError

log = get_logger(__name__)
T = TypeVar("T")


class PydanticMapper:
    """Decodes JSON objects into models.

    Supported targets, checked in order:
    1. ``dict`` — the JSON object itself, untouched
    2. pydantic ``BaseModel`` subclasses — ``model_validate``
    3. anything with a ``decode`` classmethod (``Decodable``, ``Empty``)

    Only JSON objects are ever decoded; scalars and lists map to ``None``.
    """

    def map(self, model: Type[T], data: Any) -> T | None:
        if not isinstance(data, dict):
            return None

        if model is dict:
            return data  # type: ignore[return-value]

        try:
            if isinstance(model, type) and issubclass(model, BaseModel):
                return model.model_validate(data)  # type: ignore[return-value]
            decode = getattr(model, "decode", None)
            if decode is None:
                raise TypeError(
                    f"{getattr(model, '__name__', model)!r} is neither a pydantic model "
                    "nor defines a decode() classmethod",
                )
            return decode(data)
        except (ValidationError, DecodeError) as e:
            log.debug(
                "mapper.decode.failed",
                model=getattr(model, "__name__", str(model)),
                error=str(e),
            )
            return None

    def map_array(self, model: Type[T], data: Any) -> list[T] | None:
        """Decode every object of a JSON array, dropping the ones that fail."""
        if not isinstance(data, list):
            return None

        mapped: list[T] = []
        for item in data:
            value = self.map(model, item)
            if value is not None:
                mapped.append(value)

        dropped = len(data) - len(mapped)
        if dropped:
            log.debug(
                "mapper.decode.dropped",
                model=getattr(model, "__name__", str(model)),
                dropped=dropped,
                total=len(data),
            )
        return mapped
