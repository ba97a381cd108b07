"""HTTP transport protocol — the only place bytes cross the wire."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from schemas.http import RequestDescriptor, ResponseMetadata

ProgressCallback = Callable[[int, int | None], None]


@dataclass
class RawExchange:
    """What the transport observed for one attempt.

    Failures are carried in ``error`` rather than raised so the transformer
    can still look at the body of a failed response.
    """

    body: bytes | None = None
    error: Exception | None = None
    request: RequestDescriptor | None = None
    response: ResponseMetadata | None = None
    bytes_received: int = 0

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response else None


@runtime_checkable
class Transport(Protocol):
    """Any class that can perform one HTTP exchange."""

    async def send(
        self,
        request: RequestDescriptor,
        *,
        gate: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RawExchange: ...

    async def aclose(self) -> None: ...
