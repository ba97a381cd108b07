"""Environment-driven configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All configuration comes from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Service ---
    http_base_url: str = ""
    http_value_key_path: str = ""
    http_error_key_path: str = ""
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    http_default_headers: dict[str, str] = Field(default_factory=dict)

    # --- Middleware ---
    surface_middleware_abort: bool = False

    # --- Observability ---
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    @property
    def base_url(self) -> str | None:
        return self.http_base_url or None

    @property
    def value_key_path(self) -> str | None:
        return self.http_value_key_path or None

    @property
    def error_key_path(self) -> str | None:
        return self.http_error_key_path or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
