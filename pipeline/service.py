"""HTTP service — builds requests, drives the exchange, delivers typed responses.

A request goes through:
1. URL + header construction (endpoint defaults < auth manager < call headers)
2. The transport exchange, repeated while the auth manager asks to retry a 401
3. The response middleware chain (first abort drops the request)
4. ``ResponseTransformer`` (JSON parsing, key paths, typed decoding)
5. The caller's callback, invoked exactly once
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Type, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_result

from config.settings import Settings, get_settings
from observability.logger import bind_request_context, clear_request_context, get_logger
from pipeline.errors import MiddlewareValidationError, SerializationFailedError
from pipeline.handle import RequestHandle
from pipeline.middleware import Middleware, middleware_name, run_middlewares
from pipeline.transformer import ResponseTransformer
from providers.httpx_transport import HttpxTransport
from providers.pydantic_mapper import PydanticMapper
from schemas.http import (
    QUERY_METHODS,
    HTTPMethod,
    MiddlewareResponse,
    MiddlewareResult,
    RequestDescriptor,
)
from schemas.observability import RequestOutcome, RequestRecord
from schemas.response import Response

if TYPE_CHECKING:
    from observability.metrics import MetricsCollector
    from protocols.auth import AuthManager
    from protocols.mapping import ModelMapper
    from protocols.transport import RawExchange, Transport

log = get_logger(__name__)

T = TypeVar("T")
E = TypeVar("E")

Transform = Callable[..., Response[Any, Any]]
Callback = Callable[[Response[Any, Any]], None]

UNAUTHORIZED = 401


@dataclass
class _Attempt:
    """One transport exchange plus the auth manager's verdict on it."""

    exchange: RawExchange
    retry: bool = False
    delay: float = 0.0


def _wants_auth_retry(attempt: _Attempt) -> bool:
    return attempt.retry


def _auth_retry_wait(retry_state: RetryCallState) -> float:
    return retry_state.outcome.result().delay  # type: ignore[union-attr]


def _outcome(response: Response[Any, Any]) -> RequestOutcome:
    if isinstance(response.error, SerializationFailedError):
        return "serialization_failed"
    if isinstance(response.error, MiddlewareValidationError):
        return "aborted"
    if response.error is not None:
        return "error"
    return "value" if response.value is not None else "empty"


class HTTPService:
    """Base class for API clients.

    Configure through constructor keywords or by overriding the class
    attributes / ``additional_headers`` in a subclass::

        class UsersAPI(HTTPService):
            base_url = "https://api.example.com"
            value_key_path = "data"
            error_key_path = "error"

        handle = UsersAPI().request("/users/7", User)
        response = await handle
    """

    base_url: str | None = None
    value_key_path: str | None = None
    error_key_path: str | None = None
    response_middlewares: Sequence[Middleware] = ()
    surface_middleware_abort: bool = False

    def __init__(
        self,
        *,
        base_url: str | None = None,
        value_key_path: str | None = None,
        error_key_path: str | None = None,
        middlewares: Sequence[Middleware] | None = None,
        default_headers: Mapping[str, str] | None = None,
        auth_manager: AuthManager | None = None,
        transport: Transport | None = None,
        mapper: ModelMapper | None = None,
        metrics: MetricsCollector | None = None,
        surface_middleware_abort: bool | None = None,
        timeout: float = 30.0,
    ) -> None:
        if base_url is not None:
            self.base_url = base_url
        if value_key_path is not None:
            self.value_key_path = value_key_path
        if error_key_path is not None:
            self.error_key_path = error_key_path
        if middlewares is not None:
            self.response_middlewares = list(middlewares)
        if surface_middleware_abort is not None:
            self.surface_middleware_abort = surface_middleware_abort

        self.default_headers = dict(default_headers or {})
        self.auth_manager = auth_manager
        self.transport = transport or HttpxTransport(timeout=timeout)
        self.mapper = mapper or PydanticMapper()
        self.metrics = metrics
        self._inflight: dict[asyncio.Task[Any], RequestHandle[Any]] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> HTTPService:
        """Build a service from environment configuration; ``kwargs`` win."""
        settings = settings or get_settings()
        options: dict[str, Any] = {
            "base_url": settings.base_url,
            "value_key_path": settings.value_key_path,
            "error_key_path": settings.error_key_path,
            "default_headers": settings.http_default_headers,
            "surface_middleware_abort": settings.surface_middleware_abort,
            "timeout": settings.http_timeout_seconds,
        }
        options.update(kwargs)
        return cls(**options)

    # --- Request construction ---

    def additional_headers(self, endpoint: str) -> dict[str, str]:
        """Endpoint-default headers. Override to vary them per endpoint."""
        return dict(self.default_headers)

    def build_url(self, endpoint: str) -> str:
        if self.base_url and not endpoint.startswith(("http://", "https://")):
            return self.base_url + endpoint
        return endpoint

    def merge_headers(
        self,
        endpoint: str,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Endpoint defaults, then auth headers, then call headers; last write wins.

        Names compare case-insensitively; the winning layer's spelling is kept.
        """
        layers: list[Mapping[str, str]] = [self.additional_headers(endpoint)]
        if self.auth_manager is not None:
            layers.append(self.auth_manager.auth_headers())
        layers.append(headers or {})

        merged: dict[str, str] = {}
        for layer in layers:
            for name, value in layer.items():
                for existing in [key for key in merged if key.lower() == name.lower()]:
                    del merged[existing]
                merged[name] = value
        return merged

    def build_request(
        self,
        endpoint: str,
        method: HTTPMethod = "GET",
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        query = method in QUERY_METHODS
        return RequestDescriptor(
            method=method,
            url=self.build_url(endpoint),
            headers=self.merge_headers(endpoint, headers),
            params=dict(params) if query and params is not None else None,
            json_body=dict(params) if not query and params is not None else None,
        )

    # --- Public API ---

    def request(
        self,
        endpoint: str,
        model: Type[T],
        *,
        method: HTTPMethod = "GET",
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        value_key_path: str | None = None,
        error_key_path: str | None = None,
        error_model: Type[E] = dict,  # type: ignore[assignment]
        callback: Callable[[Response[T, E]], None] | None = None,
    ) -> RequestHandle[Response[T, E]]:
        """Start a request whose payload decodes into one ``model``.

        Must be called with a running event loop. Key paths left as ``None``
        fall back to the service defaults.
        """
        transformer = self._transformer(model, error_model, value_key_path, error_key_path)
        return self._start(endpoint, method, params, headers, transformer.transform, callback)

    def request_array(
        self,
        endpoint: str,
        model: Type[T],
        *,
        method: HTTPMethod = "GET",
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        value_key_path: str | None = None,
        error_key_path: str | None = None,
        error_model: Type[E] = dict,  # type: ignore[assignment]
        callback: Callable[[Response[list[T], E]], None] | None = None,
    ) -> RequestHandle[Response[list[T], E]]:
        """Start a request whose payload decodes into a list of ``model``."""
        transformer = self._transformer(model, error_model, value_key_path, error_key_path)
        return self._start(endpoint, method, params, headers, transformer.transform_array, callback)

    async def aclose(self) -> None:
        """Let in-flight requests finish, then close the transport.

        Suspended requests would never finish, so they are cancelled.
        """
        pending = list(self._inflight.items())
        for task, handle in pending:
            if handle.suspended:
                handle.cancel()
        if pending:
            results = await asyncio.gather(*(task for task, _ in pending), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    log.error("http.request.unhandled", error=str(result), error_type=type(result).__name__)
        await self.transport.aclose()

    async def __aenter__(self) -> HTTPService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Internals ---

    def _transformer(
        self,
        model: Type[T],
        error_model: Type[E],
        value_key_path: str | None,
        error_key_path: str | None,
    ) -> ResponseTransformer[T, E]:
        return ResponseTransformer(
            model,
            error_model=error_model,
            value_key_path=self.value_key_path if value_key_path is None else value_key_path,
            error_key_path=self.error_key_path if error_key_path is None else error_key_path,
            mapper=self.mapper,
        )

    def _start(
        self,
        endpoint: str,
        method: HTTPMethod,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
        transform: Transform,
        callback: Callback | None,
    ) -> RequestHandle[Any]:
        handle: RequestHandle[Any] = RequestHandle()
        task = asyncio.create_task(
            self._run(handle, endpoint, method, params, headers, transform, callback),
        )
        handle._attach(task)
        self._inflight[task] = handle
        task.add_done_callback(self._forget)
        return handle

    def _forget(self, task: asyncio.Task[Any]) -> None:
        self._inflight.pop(task, None)

    async def _run(
        self,
        handle: RequestHandle[Any],
        endpoint: str,
        method: HTTPMethod,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
        transform: Transform,
        callback: Callback | None,
    ) -> Response[Any, Any] | None:
        record = RequestRecord(method=method, url=self.build_url(endpoint))
        bind_request_context(record.request_id, record.method, record.url)
        start = time.perf_counter()

        try:
            exchange, auth_retries = await self._exchange(handle, endpoint, method, params, headers)
            record.auth_retries = auth_retries
            record.status_code = exchange.status_code
            record.bytes_received = exchange.bytes_received

            snapshot = MiddlewareResponse(
                body=exchange.body,
                request=exchange.request,
                response=exchange.response,
            )
            verdict, index = run_middlewares(self.response_middlewares, snapshot)

            if verdict == MiddlewareResult.ABORT:
                name = middleware_name(self.response_middlewares[index])  # type: ignore[index]
                log.info(
                    "http.response.aborted",
                    middleware_index=index,
                    middleware=name,
                    status=exchange.status_code,
                    surfaced=self.surface_middleware_abort,
                )
                record.outcome = "aborted"
                if not self.surface_middleware_abort:
                    return None
                response: Response[Any, Any] = Response(
                    error=MiddlewareValidationError(index, name),  # type: ignore[arg-type]
                    metadata=exchange.response,
                )
            else:
                response = transform(exchange.body, exchange.error, exchange.response)

            record.outcome = _outcome(response)
            if response.error is not None:
                record.error_message = str(response.error)

            log.info(
                "http.request.done",
                status=exchange.status_code,
                outcome=record.outcome,
                auth_retries=auth_retries,
            )

            if callback is not None:
                callback(response)
            return response

        except asyncio.CancelledError:
            record.outcome = "cancelled"
            log.info("http.request.cancelled")
            raise

        finally:
            record.latency_ms = round((time.perf_counter() - start) * 1000, 2)
            if self.metrics is not None:
                self.metrics.record(record)
            clear_request_context()

    async def _exchange(
        self,
        handle: RequestHandle[Any],
        endpoint: str,
        method: HTTPMethod,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> tuple[RawExchange, int]:
        """Send the request, resending for as long as the auth manager asks to."""
        last: _Attempt | None = None
        retries = 0

        async for attempt in AsyncRetrying(
            retry=retry_if_result(_wants_auth_retry),
            wait=_auth_retry_wait,
            reraise=True,
        ):
            with attempt:
                retries = attempt.retry_state.attempt_number - 1
                # Rebuilt every attempt so refreshed auth headers are sent.
                request = self.build_request(endpoint, method, params, headers)
                log.debug("http.request.start", attempt=retries + 1)
                exchange = await self.transport.send(
                    request,
                    gate=handle.gate,
                    on_progress=handle.report_progress,
                )
                last = await self._auth_verdict(exchange)
            if not attempt.retry_state.outcome.failed:  # type: ignore[union-attr]
                attempt.retry_state.set_result(last)

        assert last is not None
        return last.exchange, retries

    async def _auth_verdict(self, exchange: RawExchange) -> _Attempt:
        if (
            self.auth_manager is None
            or exchange.status_code != UNAUTHORIZED
            or exchange.request is None
            or exchange.response is None
        ):
            return _Attempt(exchange)

        retry, delay = await self.auth_manager.should_retry(exchange.request, exchange.response)
        log.info("auth.retry.decision", retry=retry, delay_s=delay)
        return _Attempt(exchange, retry=retry, delay=max(0.0, delay))
