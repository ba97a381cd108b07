"""Tests for the mapper, auth manager and transport providers."""

from __future__ import annotations

import json

import httpx
import pytest
from pydantic import BaseModel

from pipeline.errors import TransportClosedError
from protocols.auth import AuthManager
from protocols.mapping import ModelMapper
from protocols.transport import Transport
from providers.bearer_auth import BearerTokenAuth
from providers.httpx_transport import HttpxTransport
from providers.pydantic_mapper import PydanticMapper
from schemas.http import RequestDescriptor, ResponseMetadata
from schemas.response import Empty


class Item(BaseModel):
    sku: str
    qty: int = 1


@pytest.fixture
def mapper() -> PydanticMapper:
    return PydanticMapper()


def test_providers_satisfy_protocols(mapper):
    assert isinstance(mapper, ModelMapper)
    assert isinstance(BearerTokenAuth("t"), AuthManager)
    assert isinstance(HttpxTransport(httpx.AsyncClient()), Transport)


# --- PydanticMapper ---


def test_map_pydantic_model(mapper):
    assert mapper.map(Item, {"sku": "a-1", "qty": "3"}) == Item(sku="a-1", qty=3)


def test_map_rejects_non_objects(mapper):
    assert mapper.map(Item, [{"sku": "a"}]) is None
    assert mapper.map(Item, "a") is None
    assert mapper.map(dict, None) is None


def test_map_validation_failure_is_none(mapper):
    assert mapper.map(Item, {"qty": 2}) is None


def test_map_empty_is_always_none(mapper):
    assert mapper.map(Empty, {}) is None


def test_map_unsupported_type_is_a_programming_error(mapper):
    with pytest.raises(TypeError):
        mapper.map(int, {"a": 1})


def test_map_array_compacts_failures(mapper):
    data = [{"sku": "a"}, {"qty": 1}, None, {"sku": "b", "qty": 2}]

    assert mapper.map_array(Item, data) == [Item(sku="a"), Item(sku="b", qty=2)]


def test_map_array_needs_a_list(mapper):
    assert mapper.map_array(Item, {"sku": "a"}) is None


def test_empty_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Empty()


# --- BearerTokenAuth ---


def _req() -> RequestDescriptor:
    return RequestDescriptor(url="https://api.test/me")


def _unauthorized() -> ResponseMetadata:
    return ResponseMetadata(status_code=401)


def test_bearer_headers():
    auth = BearerTokenAuth("abc", extra_headers={"X-Api-Version": "2"})

    assert auth.auth_headers() == {"X-Api-Version": "2", "Authorization": "Bearer abc"}


async def test_bearer_without_refresh_never_retries():
    assert await BearerTokenAuth("abc").should_retry(_req(), _unauthorized()) == (False, 0.0)


async def test_bearer_refresh_swaps_token_and_retries():
    async def refresh() -> str:
        return "def"

    auth = BearerTokenAuth("abc", refresh=refresh, retry_delay=0.25)

    assert await auth.should_retry(_req(), _unauthorized()) == (True, 0.25)
    assert auth.auth_headers()["Authorization"] == "Bearer def"


@pytest.mark.parametrize("refreshed", [None, "", "abc"])
async def test_bearer_refresh_without_new_token_gives_up(refreshed):
    async def refresh() -> str | None:
        return refreshed

    auth = BearerTokenAuth("abc", refresh=refresh)

    assert await auth.should_retry(_req(), _unauthorized()) == (False, 0.0)
    assert auth.token == "abc"


# --- HttpxTransport ---


async def test_transport_collects_exchange():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={"ok": True}, headers={"X-Request-Id": "r1"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        transport = HttpxTransport(client)
        exchange = await transport.send(
            RequestDescriptor(method="POST", url="https://api.test/items", json_body={"sku": "a"}),
        )

    assert exchange.error is None
    assert json.loads(exchange.body) == {"ok": True}
    assert exchange.status_code == 201
    assert exchange.response.headers["x-request-id"] == "r1"
    assert exchange.response.reason == "Created"
    assert exchange.request.method == "POST"
    assert exchange.bytes_received == len(exchange.body)


async def test_transport_keeps_body_of_failed_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        exchange = await HttpxTransport(client).send(RequestDescriptor(url="https://api.test/x"))

    assert isinstance(exchange.error, httpx.HTTPStatusError)
    assert json.loads(exchange.body) == {"error": "boom"}
    assert exchange.status_code == 500


async def test_transport_treats_redirect_status_as_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(304)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        exchange = await HttpxTransport(client).send(RequestDescriptor(url="https://api.test/x"))

    assert isinstance(exchange.error, httpx.HTTPStatusError)


async def test_borrowed_client_stays_open():
    client = httpx.AsyncClient()
    await HttpxTransport(client).aclose()

    assert not client.is_closed
    await client.aclose()


async def test_owned_client_is_closed():
    async with HttpxTransport(timeout=5.0) as transport:
        client = transport._client

    assert client.is_closed


async def test_transport_counts_streamed_bytes_for_progress():
    payload = b"x" * 4096

    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=payload))) as client:
        progress: list[tuple[int, int | None]] = []
        exchange = await HttpxTransport(client).send(
            RequestDescriptor(url="https://api.test/blob"),
            on_progress=lambda received, total: progress.append((received, total)),
        )

    assert exchange.bytes_received == len(payload)
    assert progress[-1] == (len(payload), len(payload))


async def test_transport_reports_invalid_url_as_error():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200))) as client:
        exchange = await HttpxTransport(client).send(RequestDescriptor(url="http://[::1"))

    assert isinstance(exchange.error, httpx.InvalidURL)
    assert exchange.response is None


async def test_transport_reports_closed_client_as_error():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    await client.aclose()

    exchange = await HttpxTransport(client).send(RequestDescriptor(url="https://api.test/x"))

    assert isinstance(exchange.error, TransportClosedError)
    assert exchange.body is None
