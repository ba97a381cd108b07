"""Caller-facing handle for an in-flight request."""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from typing import Any, Generic, TypeVar

from protocols.transport import ProgressCallback

R = TypeVar("R")


class RequestHandle(Generic[R]):
    """Controls one request running as an asyncio task.

    ``suspend``/``resume`` close and open a gate the transport waits on
    before sending and between body chunks. Awaiting the handle yields the
    delivered response, or ``None`` when the request was dropped by a
    middleware or cancelled.
    """

    def __init__(self) -> None:
        self._gate = asyncio.Event()
        self._gate.set()
        self._progress: list[ProgressCallback] = []
        self._task: asyncio.Task[R | None] | None = None

    def _attach(self, task: asyncio.Task[R | None]) -> None:
        self._task = task

    @property
    def gate(self) -> asyncio.Event:
        return self._gate

    def progress(self, fn: ProgressCallback) -> RequestHandle[R]:
        """Register ``fn(received_bytes, total_bytes_or_None)``."""
        self._progress.append(fn)
        return self

    def report_progress(self, received: int, total: int | None) -> None:
        for fn in self._progress:
            fn(received, total)

    def suspend(self) -> None:
        self._gate.clear()

    def resume(self) -> None:
        self._gate.set()

    @property
    def suspended(self) -> bool:
        return not self._gate.is_set()

    def cancel(self) -> bool:
        if self._task is None:
            return False
        return self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    async def result(self) -> R | None:
        if self._task is None:
            raise RuntimeError("request handle is not attached to a running request")
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._task.cancelled():
                return None
            raise

    def __await__(self) -> Generator[Any, None, R | None]:
        return self.result().__await__()
