from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_WORKER_COUNT = 5


class BotSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_token: str
    worker_count: int = DEFAULT_WORKER_COUNT
    long_poll: bool = False
    webhook_url: str | None = None
    webhook_path: str | None = None
    webhook_secret: str | None = None
    listen_host: str = "0.0.0.0"
    listen_port: int = Field(default=8080, ge=1, le=65535)
    poll_timeout_s: int = Field(default=50, ge=0)
    poll_retry_delay_s: float = Field(default=2.0, ge=0)
    allowed_updates: list[str] | None = None
    drain_timeout_s: float = Field(default=10.0, ge=0)
    request_timeout_s: float = Field(default=120.0, gt=0)
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("api_token")
    @classmethod
    def _require_token(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("api_token must be a non-empty string")
        return value

    @field_validator("worker_count")
    @classmethod
    def _default_workers(cls, value: int) -> int:
        if value < 0:
            raise ValueError("worker_count must not be negative")
        return value or DEFAULT_WORKER_COUNT

    @field_validator("webhook_path")
    @classmethod
    def _normalize_path(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        return value if value.startswith("/") else f"/{value}"

    @property
    def webhook_route(self) -> str:
        return self.webhook_path or f"/bot{self.api_token}"
