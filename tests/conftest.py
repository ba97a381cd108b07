"""Shared fixtures — every exchange is served in-process by httpx.MockTransport."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from observability.metrics import MetricsCollector
from pipeline.service import HTTPService
from providers.httpx_transport import HttpxTransport

BASE_URL = "https://api.test"

Handler = Callable[[httpx.Request], Any]


class RecordingHandler:
    """Wraps a MockTransport handler and keeps every request it saw."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
async def make_service(metrics):
    """Factory: ``make_service(handler, **service_kwargs) -> (service, recorder)``."""
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Handler, service_cls: type[HTTPService] = HTTPService, **kwargs: Any):
        recorder = RecordingHandler(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        clients.append(client)
        kwargs.setdefault("base_url", BASE_URL)
        kwargs.setdefault("metrics", metrics)
        service = service_cls(transport=HttpxTransport(client), **kwargs)
        return service, recorder

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
def user_body() -> bytes:
    return b'{"data": {"id": 7, "name": "x"}}'
