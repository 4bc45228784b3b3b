"""Outbox admin schemas."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import Field, field_validator

from alpr_service.core.schemas import CustomBase
from alpr_service.infra.events.outbox.models import OutboxStatus


class OutboxSummaryResponse(CustomBase):
    """Record count per status; all four statuses are always present."""

    counts: dict[str, int]
    total: int = Field(ge=0)


class OutboxRecordResponse(CustomBase):
    """Delivery bookkeeping of one outbox record (payload omitted)."""

    id: str
    event_id: str
    status: OutboxStatus
    attempts: int
    next_retry_at: datetime | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    published_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime

    @field_validator("next_retry_at", "locked_at", "published_at", "created_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class OutboxRecentResponse(CustomBase):
    items: list[OutboxRecordResponse]
    limit: int
