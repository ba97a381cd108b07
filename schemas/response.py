"""Result envelope delivered to callers, plus the never-decoding ``Empty`` model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pipeline.errors import DecodeError
from schemas.http import ResponseMetadata

T = TypeVar("T")
E = TypeVar("E")


class Empty:
    """Target type for endpoints whose body is ignored.

    It never decodes, so ``Response[Empty, ...].value`` is always ``None``.
    Used as the error type it disables error-body decoding.
    """

    def __init__(self) -> None:
        raise TypeError("Empty cannot be instantiated")

    @classmethod
    def decode(cls, data: Any) -> Empty:
        raise DecodeError("Empty never decodes", model=cls.__name__)


@dataclass
class Response(Generic[T, E]):
    """Outcome of a single request.

    Exactly one of ``value`` / ``error`` is meaningfully set. ``error_body``
    is only present when the request failed, an error key path was
    configured and the JSON found there decoded into ``E``.
    """

    value: T | None = None
    error: Exception | None = None
    error_body: E | None = None
    metadata: ResponseMetadata | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int | None:
        return self.metadata.status_code if self.metadata else None
