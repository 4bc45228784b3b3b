"""Outbox publisher settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OutboxSettings(BaseSettings):
    """Claim/publish loop tuning.

    Environment variables use OUTBOX_ prefix.
    Example: OUTBOX_BATCH_SIZE=100, OUTBOX_LOCK_TTL_SECONDS=120
    """

    enabled: bool = Field(
        default=True,
        description="Enable the outbox publisher in processes that support it.",
    )
    tick_interval: float = Field(
        default=1.0,
        gt=0,
        le=3600.0,
        description="Seconds between publisher ticks.",
    )
    batch_size: int = Field(
        default=50,
        ge=1,
        le=10_000,
        description="Maximum records claimed per pass.",
    )
    max_attempts: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Failed publish attempts before a record becomes FAILED.",
    )
    lock_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Age after which a PROCESSING lock may be reclaimed by another worker.",
    )
    worker_id: str | None = Field(
        default=None,
        max_length=200,
        description="Stable worker identity. Generated from host/pid when unset.",
    )
    error_max_length: int = Field(
        default=1500,
        ge=1,
        le=100_000,
        description="Maximum characters of the last error stored per record.",
    )

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
