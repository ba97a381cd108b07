"""Bearer-token auth manager with optional refresh. Implements AuthManager protocol."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping

from observability.logger import get_logger
from schemas.http import RequestDescriptor, ResponseMetadata

log = get_logger(__name__)

TokenRefresher = Callable[[], Awaitable[str | None]]


class BearerTokenAuth:
    """Sends ``Authorization: Bearer <token>``.

    On a 401 the ``refresh`` coroutine is awaited; the request is retried
    only when it hands back a token different from the one that was rejected.
    Without ``refresh`` a 401 is final.
    """

    def __init__(
        self,
        token: str,
        refresh: TokenRefresher | None = None,
        *,
        retry_delay: float = 0.0,
        extra_headers: Mapping[str, str] | None = None,
    ) -> None:
        self.token = token
        self.refresh = refresh
        self.retry_delay = retry_delay
        self.extra_headers = dict(extra_headers or {})

    def auth_headers(self) -> Mapping[str, str]:
        return {**self.extra_headers, "Authorization": f"Bearer {self.token}"}

    async def should_retry(
        self,
        request: RequestDescriptor,
        response: ResponseMetadata,
    ) -> tuple[bool, float]:
        if self.refresh is None:
            return False, 0.0

        new_token = await self.refresh()
        if not new_token or new_token == self.token:
            log.info("auth.refresh.unchanged", url=request.url, status=response.status_code)
            return False, 0.0

        self.token = new_token
        log.info("auth.refresh.success", url=request.url)
        return True, self.retry_delay
