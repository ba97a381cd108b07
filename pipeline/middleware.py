"""Response middleware chain — runs before any transformation."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from observability.logger import get_logger
from schemas.http import MiddlewareResponse, MiddlewareResult

log = get_logger(__name__)

Middleware = Callable[[MiddlewareResponse], MiddlewareResult]


def middleware_name(middleware: Middleware) -> str:
    return getattr(middleware, "__name__", type(middleware).__name__)


def run_middlewares(
    middlewares: Sequence[Middleware],
    snapshot: MiddlewareResponse,
) -> tuple[MiddlewareResult, int | None]:
    """Evaluate middlewares in registration order.

    Returns ``(ABORT, index)`` for the first middleware that aborts, leaving
    the rest unevaluated, or ``(CONTINUE, None)``.
    """
    for index, middleware in enumerate(middlewares):
        if middleware(snapshot) == MiddlewareResult.ABORT:
            return MiddlewareResult.ABORT, index
    return MiddlewareResult.CONTINUE, None


# --- Built-in middlewares ---


def log_response(snapshot: MiddlewareResponse) -> MiddlewareResult:
    """Log the exchange and let it through."""
    log.info(
        "http.response.received",
        method=snapshot.request.method if snapshot.request else None,
        url=snapshot.request.url if snapshot.request else None,
        status=snapshot.response.status_code if snapshot.response else None,
        body_bytes=len(snapshot.body) if snapshot.body else 0,
    )
    return MiddlewareResult.CONTINUE


def reject_status(*status_codes: int) -> Middleware:
    """Build a middleware that aborts responses with any of ``status_codes``."""
    rejected = frozenset(status_codes)

    def _reject(snapshot: MiddlewareResponse) -> MiddlewareResult:
        if snapshot.response is not None and snapshot.response.status_code in rejected:
            return MiddlewareResult.ABORT
        return MiddlewareResult.CONTINUE

    _reject.__name__ = f"reject_status{tuple(sorted(rejected))}"
    return _reject
