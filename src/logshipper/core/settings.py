"""
Configuration models for logshipper using Pydantic v2 Settings.

Every field can be set from the environment, e.g.
``LOGSHIPPER_CORE__QUEUE_CAPACITY=500`` or
``LOGSHIPPER_CLOUDWATCH__LOG_GROUP_NAME=/app/prod``.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)


class CoreSettings(BaseModel):
    """Queue, dispatcher and diagnostics settings."""

    queue_capacity: int = Field(
        default=100,
        ge=1,
        description="Event queue slots; events beyond this are dropped",
    )
    flush_interval_seconds: float = Field(
        default=0.2,
        gt=0.0,
        description="Period of the dispatcher tick that issues append calls",
    )
    absorb_interval_seconds: float = Field(
        default=0.02,
        gt=0.0,
        description="How often queued events are moved into the pending batch",
    )
    append_timeout_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description=(
            "Optional bound on a single append call; a timeout counts as a "
            "failed append. None waits indefinitely"
        ),
    )
    refresh_token_on_conflict: bool = Field(
        default=False,
        description=(
            "Adopt the expected sequence token reported by the sink on a "
            "token conflict instead of retrying with the stale token"
        ),
    )
    stop_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Maximum time stop() waits for the dispatcher to finish",
    )
    atexit_stop_enabled: bool = Field(
        default=True,
        description="Stop registered hooks (with a final flush) at interpreter exit",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Enable Prometheus-compatible metrics",
    )
    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit JSON diagnostics to stderr for internal errors",
    )

    @model_validator(mode="after")
    def _absorb_not_slower_than_flush(self) -> CoreSettings:
        if self.absorb_interval_seconds > self.flush_interval_seconds:
            self.absorb_interval_seconds = self.flush_interval_seconds
        return self


class CloudWatchSettings(BaseModel):
    """Target stream and AWS client settings."""

    log_group_name: str | None = Field(
        default=None, description="Log group that must already exist"
    )
    log_stream_name: str | None = Field(
        default=None, description="Log stream; created when missing"
    )
    region: str | None = Field(
        default_factory=lambda: os.getenv("AWS_REGION")
        or os.getenv("AWS_DEFAULT_REGION"),
        description="AWS region for the CloudWatch Logs client",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Override endpoint (e.g. a local CloudWatch emulator)",
    )

    @field_validator("log_group_name", "log_stream_name")
    @classmethod
    def _strip_names(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("log group/stream names must not be empty")
        return value


class Settings(BaseSettings):
    """Top-level configuration."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    cloudwatch: CloudWatchSettings = Field(default_factory=CloudWatchSettings)

    model_config = SettingsConfigDict(
        env_prefix="LOGSHIPPER_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
