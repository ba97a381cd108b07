"""Auth manager protocol — supplies headers and decides on 401 retries."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from schemas.http import RequestDescriptor, ResponseMetadata


@runtime_checkable
class AuthManager(Protocol):
    """Any class that can authenticate outgoing requests."""

    def auth_headers(self) -> Mapping[str, str]:
        """Headers merged into every request, re-read on each attempt."""
        ...

    async def should_retry(
        self,
        request: RequestDescriptor,
        response: ResponseMetadata,
    ) -> tuple[bool, float]:
        """Called only after a 401. Returns ``(retry, delay_seconds)``."""
        ...
