"""Error kinds raised or delivered by the service layer.

Transport failures are not wrapped: whatever ``httpx`` produced
(``httpx.HTTPStatusError`` for non-2xx, ``httpx.RequestError`` for network
problems) reaches the caller unchanged in ``Response.error``.
"""

from __future__ import annotations


class RequestError(Exception):
    """Base class for errors produced by this layer itself."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class TransportClosedError(RequestError):
    """A request was started on a transport whose client is already closed."""


class SerializationFailedError(RequestError):
    """The response carried a body that is not valid JSON.

    When the transport had also failed, its error is kept in
    ``transport_error``; the serialization failure is what gets reported.
    """

    transport_error: Exception | None = None


class MiddlewareValidationError(RequestError):
    """A response middleware aborted the request.

    Only delivered when the service surfaces aborts; by default an abort
    drops the request without invoking the callback.
    """

    def __init__(self, index: int, middleware: str = "") -> None:
        super().__init__(
            f"response middleware #{index} ({middleware or 'anonymous'}) aborted the request",
        )
        self.index = index
        self.middleware = middleware


class DecodeError(RequestError):
    """JSON did not match the shape a model expects."""

    def __init__(self, message: str, *, model: str = "") -> None:
        super().__init__(message)
        self.model = model
