"""Background task configuration settings.

This module provides settings for taskiq task execution, the task outbox
relay and the periodic maintenance sweeps.

Environment variables use TASK_ prefix.
Example: TASK_RELAY_POLL_INTERVAL_SECONDS=2
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric


class TaskSettings(BaseSettings):
    """Task execution and outbox relay configuration.

    Environment variables use TASK_ prefix.
    Example: TASK_MAX_RETRIES=5

    Every pipeline step is enqueued by writing a row to the task outbox in
    the same transaction as the change that requested it. The relay moves
    those rows onto the broker; the settings below tune that loop.
    """

    # ──────────────────────────────────────────────────────────────
    # Broker redelivery
    # ──────────────────────────────────────────────────────────────

    max_retries: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Broker-level redeliveries of a task that raised",
    )

    # ──────────────────────────────────────────────────────────────
    # Outbox relay
    # ──────────────────────────────────────────────────────────────

    relay_enabled: bool = Field(
        default=True,
        description="Run the outbox relay loop in this process",
    )
    relay_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Outbox rows kicked per relay iteration",
    )
    relay_poll_interval_seconds: float = Field(
        default=1.0,
        ge=0.05,
        le=60.0,
        description="Seconds between relay polls when the outbox is empty",
    )
    relay_max_attempts: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Failed kicks before an outbox row is left for inspection",
    )
    relay_retry_delay_seconds: int = Field(
        default=5,
        ge=1,
        le=3600,
        description="Base delay for exponential backoff of failed kicks",
    )
    outbox_retention_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Days to keep relayed outbox rows before the sweep deletes them",
    )

    # ──────────────────────────────────────────────────────────────
    # Maintenance sweeps
    # ──────────────────────────────────────────────────────────────

    sweeps_enabled: bool = Field(
        default=True,
        description="Schedule the expiry sweeps with APScheduler",
    )
    sweep_interval_hours: int = Field(
        default=1,
        ge=1,
        le=24,
        description="Hours between expiry sweeps",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sweep_interval_seconds(self) -> int:
        """Get sweep interval in seconds."""
        return self.sweep_interval_hours * 3600

    @field_validator(
        "max_retries",
        "relay_batch_size",
        "relay_poll_interval_seconds",
        "relay_max_attempts",
        "relay_retry_delay_seconds",
        "outbox_retention_days",
        "sweep_interval_hours",
        mode="before",
    )
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments."""
        return sanitize_inline_numeric(value)

    model_config = SettingsConfigDict(
        env_prefix="TASK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
