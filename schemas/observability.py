"""Observability schemas for HTTP requests."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

RequestOutcome = Literal[
    "value",
    "empty",
    "error",
    "serialization_failed",
    "aborted",
    "cancelled",
]


class RequestRecord(BaseModel):
    """Record of a single request for latency and failure tracking."""

    request_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    method: str = ""
    url: str = ""
    status_code: int | None = None
    outcome: RequestOutcome = "empty"
    latency_ms: float = 0.0
    bytes_received: int = 0
    auth_retries: int = 0
    error_message: str = ""
