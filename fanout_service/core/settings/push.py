"""Push gateway delivery settings.

Covers the outbound gateway connection, batch sizing, the retry backoff
curve and the lifetimes of subscriptions, messages and channels.

Environment variables use PUSH_ prefix.
Example: PUSH_API_KEY=AIza..., PUSH_BATCH_SIZE=500
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, SecretStr, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric

# Hard ceiling imposed by the gateway on registration ids per request
MAX_GATEWAY_BATCH_SIZE = 1000


class PushSettings(BaseSettings):
    """Configuration for the push fan-out pipeline.

    Controls where notifications are sent, how many devices go into a
    single gateway request, how retry delays escalate and how long the
    stored records live.
    """

    # ──────────────────────────────────────────────────────────────
    # Gateway connection
    # ──────────────────────────────────────────────────────────────

    gateway_url: str = Field(
        default="https://gcm-http.googleapis.com/gcm/send",
        min_length=1,
        description="Push gateway endpoint receiving multicast requests",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Server key sent as 'Authorization: key=<api_key>'",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Total timeout for a gateway request (seconds)",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Connection timeout for a gateway request (seconds)",
    )

    # ──────────────────────────────────────────────────────────────
    # Batching
    # ──────────────────────────────────────────────────────────────

    batch_size: int = Field(
        default=MAX_GATEWAY_BATCH_SIZE,
        ge=1,
        le=MAX_GATEWAY_BATCH_SIZE,
        description="Maximum device ids per gateway request",
    )
    chain_step_size: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Device ids corrected per rotation/removal chain step",
    )

    # ──────────────────────────────────────────────────────────────
    # Retry backoff
    # ──────────────────────────────────────────────────────────────

    backoff_multiplier: float = Field(
        default=1.5,
        ge=1.0,
        le=10.0,
        description=(
            "Multiplier applied to the previous delay on each retry. The broker "
            "schedules whole seconds, so the actual wait is the delay rounded up "
            "(1.5s waits 2s, 2.25s waits 3s)"
        ),
    )
    min_delay_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Lower bound for a retry delay (seconds)",
    )
    max_delay_seconds: float = Field(
        default=3600.0,
        gt=0.0,
        description="Upper bound for a retry delay (1 hour default)",
    )
    unavailable_error: str = Field(
        default="Unavailable",
        min_length=1,
        description="Per-device error code meaning 'try this device again later'",
    )

    # ──────────────────────────────────────────────────────────────
    # Record lifetimes
    # ──────────────────────────────────────────────────────────────

    subscription_ttl_days: int = Field(
        default=35,
        ge=1,
        le=3650,
        description="Days a subscription stays live after it was last renewed",
    )
    message_max_age_days: int = Field(
        default=35,
        ge=1,
        le=3650,
        description="Days a message is kept before the sweep deletes it",
    )
    channel_max_idle_days: int = Field(
        default=35,
        ge=1,
        le=3650,
        description="Days without a message before a channel is deleted",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_configured(self) -> bool:
        """Check if a gateway key has been provided."""
        return bool(self.api_key.get_secret_value())

    @field_validator(
        "timeout_seconds",
        "connect_timeout_seconds",
        "batch_size",
        "chain_step_size",
        "backoff_multiplier",
        "min_delay_seconds",
        "max_delay_seconds",
        mode="before",
    )
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments."""
        return sanitize_inline_numeric(value)

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> PushSettings:
        if self.min_delay_seconds > self.max_delay_seconds:
            msg = "min_delay_seconds must not exceed max_delay_seconds"
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )


__all__ = ["MAX_GATEWAY_BATCH_SIZE", "PushSettings"]
