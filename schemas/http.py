"""Request/response snapshots shared by the transport, middlewares and transformer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

HTTPMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Methods whose parameters travel in the query string rather than a JSON body.
QUERY_METHODS: frozenset[str] = frozenset({"GET", "DELETE", "HEAD"})


class RequestDescriptor(BaseModel):
    """The request as it was actually sent."""

    model_config = ConfigDict(frozen=True)

    method: HTTPMethod = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] | None = None
    json_body: Any = None

    @property
    def sends_query(self) -> bool:
        return self.method in QUERY_METHODS


class ResponseMetadata(BaseModel):
    """Status line and headers of a received response."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    reason: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    url: str = ""
    elapsed_ms: float = 0.0

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class MiddlewareResponse(BaseModel):
    """Immutable snapshot handed to every response middleware."""

    model_config = ConfigDict(frozen=True)

    body: bytes | None = None
    request: RequestDescriptor | None = None
    response: ResponseMetadata | None = None


class MiddlewareResult(str, Enum):
    CONTINUE = "continue"
    ABORT = "abort"
