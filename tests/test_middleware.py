"""Tests for the response middleware chain."""

from __future__ import annotations

from pipeline.middleware import log_response, middleware_name, reject_status, run_middlewares
from schemas.http import MiddlewareResponse, MiddlewareResult, RequestDescriptor, ResponseMetadata


def _snapshot(status: int = 200, body: bytes | None = b"{}") -> MiddlewareResponse:
    return MiddlewareResponse(
        body=body,
        request=RequestDescriptor(method="GET", url="https://api.test/x"),
        response=ResponseMetadata(status_code=status),
    )


class Spy:
    def __init__(self, result: MiddlewareResult) -> None:
        self.result = result
        self.seen: list[MiddlewareResponse] = []

    def __call__(self, snapshot: MiddlewareResponse) -> MiddlewareResult:
        self.seen.append(snapshot)
        return self.result


def test_all_continue():
    chain = [Spy(MiddlewareResult.CONTINUE), Spy(MiddlewareResult.CONTINUE)]

    verdict, index = run_middlewares(chain, _snapshot())

    assert verdict is MiddlewareResult.CONTINUE
    assert index is None
    assert all(len(m.seen) == 1 for m in chain)


def test_first_abort_stops_the_chain():
    first = Spy(MiddlewareResult.CONTINUE)
    aborting = Spy(MiddlewareResult.ABORT)
    never = Spy(MiddlewareResult.CONTINUE)

    verdict, index = run_middlewares([first, aborting, never], _snapshot())

    assert verdict is MiddlewareResult.ABORT
    assert index == 1
    assert len(first.seen) == 1
    assert len(aborting.seen) == 1
    assert never.seen == []


def test_every_middleware_sees_the_same_snapshot():
    a, b = Spy(MiddlewareResult.CONTINUE), Spy(MiddlewareResult.CONTINUE)
    snapshot = _snapshot()

    run_middlewares([a, b], snapshot)

    assert a.seen[0] is snapshot
    assert b.seen[0] is snapshot


def test_empty_chain_continues():
    assert run_middlewares([], _snapshot()) == (MiddlewareResult.CONTINUE, None)


def test_plain_string_results_are_understood():
    verdict, index = run_middlewares([lambda _: "abort"], _snapshot())

    assert verdict is MiddlewareResult.ABORT
    assert index == 0


def test_reject_status():
    middleware = reject_status(204, 304)

    assert middleware(_snapshot(304)) is MiddlewareResult.ABORT
    assert middleware(_snapshot(200)) is MiddlewareResult.CONTINUE
    assert middleware(MiddlewareResponse()) is MiddlewareResult.CONTINUE
    assert middleware_name(middleware) == "reject_status(204, 304)"


def test_log_response_always_continues():
    assert log_response(_snapshot(500, body=None)) is MiddlewareResult.CONTINUE
    assert log_response(MiddlewareResponse()) is MiddlewareResult.CONTINUE


def test_middleware_name_falls_back_to_class_name():
    assert middleware_name(Spy(MiddlewareResult.CONTINUE)) == "Spy"
    assert middleware_name(log_response) == "log_response"
