from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_URL = "ws://192.168.1.88/ws"
DEFAULT_MAX_MESSAGE_BYTES = 4 * 1024 * 1024


class ClientSettings(BaseSettings):
    """Connection settings populated from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WSTELEM_",
        extra="ignore",
    )

    url: str = DEFAULT_URL
    transport: Literal["raw", "hub"] = "raw"
    connect_timeout: float = Field(default=30.0, gt=0)
    keepalive_interval: float = Field(default=0.0, ge=0)
    min_delay_ms: int = Field(default=500, gt=0)
    max_delay_ms: int = Field(default=30_000, gt=0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    max_log_lines: int = Field(default=10_000, gt=0)
    view_height: int = Field(default=10, gt=0)
    binary_base64: bool = False
    max_message_bytes: int = Field(default=DEFAULT_MAX_MESSAGE_BYTES, gt=0)

    @field_validator("url")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        return v.strip()

    @field_validator("transport", mode="before")
    @classmethod
    def _lower_transport(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_delays(self) -> ClientSettings:
        if self.max_delay_ms < self.min_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= min_delay_ms ({self.min_delay_ms})"
            )
        return self

    @property
    def keepalive(self) -> float | None:
        """Ping interval for ``websockets`` (``None`` disables pings)."""
        return self.keepalive_interval or None

    def merge_overrides(self, **overrides: Any) -> ClientSettings:
        """Return a new settings object with non-``None`` CLI overrides applied."""
        data: dict[str, Any] = self.model_dump()
        for key, value in overrides.items():
            if value is None:
                continue
            if key not in data:
                raise TypeError(f"Unknown setting: {key}")
            data[key] = value
        return type(self).model_validate(data)
