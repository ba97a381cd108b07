"""Response transformation: JSON parsing, key-path extraction, typed decoding.

Given what the transport observed (body, transport error, metadata) the
transformer produces a ``Response`` envelope:

1. A non-empty body is parsed as JSON; invalid JSON ends the transform with
   ``SerializationFailedError``.
2. With a transport error, the error key path is looked up and decoded into
   the error model; the transport error is reported as is.
3. Otherwise the value key path (or the whole document) is decoded into the
   model, or a list of models for ``transform_array``.
"""

from __future__ import annotations

import json
from typing import Any, Generic, Type, TypeVar

from observability.logger import get_logger
from pipeline.errors import SerializationFailedError
from pipeline.keypath import split_key_path, value_at_key_path
from protocols.mapping import ModelMapper
from providers.pydantic_mapper import PydanticMapper
from schemas.http import ResponseMetadata
from schemas.response import Response

log = get_logger(__name__)

T = TypeVar("T")
E = TypeVar("E")


def parse_json(body: bytes | None) -> Any:
    """Parse a response body. Empty or absent bodies parse to ``None``."""
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        raise SerializationFailedError(
            f"response body is not valid JSON: {e}",
            hint="check the endpoint's Content-Type or add a middleware that rejects non-JSON bodies",
        ) from e


class ResponseTransformer(Generic[T, E]):
    """Turns one raw exchange into a ``Response[T, E]``.

    Instances are cheap and meant to be built per request; they hold only
    configuration.
    """

    def __init__(
        self,
        model: Type[T],
        *,
        error_model: Type[E] = dict,  # type: ignore[assignment]
        value_key_path: str | None = None,
        error_key_path: str | None = None,
        mapper: ModelMapper | None = None,
    ) -> None:
        self.model = model
        self.error_model = error_model
        self.value_key_path = value_key_path
        self.error_key_path = error_key_path
        self.mapper = mapper or PydanticMapper()

    def transform(
        self,
        body: bytes | None,
        error: Exception | None = None,
        metadata: ResponseMetadata | None = None,
    ) -> Response[T, E]:
        response: Response[T, E] = Response(metadata=metadata)
        payload = self._base_transform(response, body, error)
        response.value = self.mapper.map(self.model, payload)
        return response

    def transform_array(
        self,
        body: bytes | None,
        error: Exception | None = None,
        metadata: ResponseMetadata | None = None,
    ) -> Response[list[T], E]:
        response: Response[list[T], E] = Response(metadata=metadata)
        payload = self._base_transform(response, body, error)
        response.value = self.mapper.map_array(self.model, payload)
        return response

    def error_body(self, document: Any) -> E | None:
        if not split_key_path(self.error_key_path):
            return None
        return self.mapper.map(self.error_model, value_at_key_path(document, self.error_key_path))

    def _base_transform(
        self,
        response: Response[Any, E],
        body: bytes | None,
        error: Exception | None,
    ) -> Any:
        """Shared steps 1-2. Returns the payload to decode, ``None`` to decode nothing."""
        try:
            document = parse_json(body)
        except SerializationFailedError as e:
            e.transport_error = error
            log.warning(
                "transform.serialization_failed",
                status=response.status_code,
                body_bytes=len(body or b""),
                transport_error=type(error).__name__ if error else None,
            )
            response.error = e
            return None

        if error is not None:
            response.error_body = self.error_body(document)
            response.error = error
            return None

        return value_at_key_path(document, self.value_key_path)
