"""httpx transport with streamed download, progress and pause gate. Implements Transport protocol."""

from __future__ import annotations

import asyncio
import time

import httpx

from observability.logger import get_logger
from pipeline.errors import TransportClosedError
from protocols.transport import ProgressCallback, RawExchange
from schemas.http import RequestDescriptor, ResponseMetadata

log = get_logger(__name__)


def _content_length(response: httpx.Response) -> int | None:
    raw = response.headers.get("content-length", "")
    return int(raw) if raw.isdigit() else None


class HttpxTransport:
    """Sends requests through an ``httpx.AsyncClient``.

    A client passed in is borrowed and left open on ``aclose()``; one created
    here is owned and closed with the transport.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(
        self,
        request: RequestDescriptor,
        *,
        gate: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RawExchange:
        exchange = RawExchange(request=request)

        if gate is not None:
            await gate.wait()

        if self._client.is_closed:
            log.warning("transport.client.closed", method=request.method, url=request.url)
            exchange.error = TransportClosedError(
                "HTTP client is closed",
                hint="close the service only after its requests finish",
            )
            return exchange

        start = time.perf_counter()
        try:
            async with self._client.stream(
                request.method,
                request.url,
                params=request.params,
                json=request.json_body,
                headers=request.headers,
            ) as resp:
                total = _content_length(resp)
                chunks: list[bytes] = []
                received = 0
                async for chunk in resp.aiter_bytes():
                    chunks.append(chunk)
                    received += len(chunk)
                    if on_progress is not None:
                        on_progress(received, total)
                    if gate is not None:
                        await gate.wait()

                exchange.body = b"".join(chunks)
                exchange.bytes_received = received
                exchange.request = request.model_copy(
                    update={
                        "url": str(resp.request.url),
                        "headers": dict(resp.request.headers),
                    },
                )
                exchange.response = ResponseMetadata(
                    status_code=resp.status_code,
                    reason=resp.reason_phrase,
                    headers=dict(resp.headers),
                    url=str(resp.url),
                    elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
                )

                try:
                    resp.raise_for_status()
                except httpx.HTTPStatusError as e:
                    exchange.error = e

        except (httpx.RequestError, httpx.InvalidURL) as e:
            log.warning(
                "transport.request.failed",
                method=request.method,
                url=request.url,
                error=str(e),
                error_type=type(e).__name__,
            )
            exchange.error = e

        return exchange

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
