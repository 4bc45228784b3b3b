"""Outbox record model for the transactional outbox pattern.

Each ALPR event gets exactly one outbox record, written in the same
transaction. The record carries the frozen message payload and the delivery
bookkeeping used by the claim/publish loop:

    PENDING --claim--> PROCESSING --ok--> PUBLISHED
                           |
                           +--error, attempts < max--> PENDING (next_retry_at set)
                           +--error, attempts >= max--> FAILED

A PROCESSING row whose ``locked_at`` is older than the lock TTL is treated as
abandoned and may be claimed by any worker. Records are never deleted.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from alpr_service.core.database import Base, CreatedAtMixin, UUIDv7PKMixin


class OutboxStatus(str, Enum):
    """Delivery state of an outbox record."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


PayloadType = JSON().with_variant(JSONB(), "postgresql")


class OutboxRecord(Base, UUIDv7PKMixin, CreatedAtMixin):
    """Delivery bookkeeping for one ALPR event."""

    __tablename__ = "anpr_event_outbox"

    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("anpr_events.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        comment="The event this record delivers (1:1)",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        PayloadType,
        nullable=False,
        comment="Versioned message body, fixed at creation",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=OutboxStatus.PENDING.value,
        comment="PENDING | PROCESSING | PUBLISHED | FAILED",
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Failed publish attempts so far",
    )
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Earliest time the record may be claimed again",
    )
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the current claim was taken",
    )
    locked_by: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
        comment="Worker holding the current claim",
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Broker acceptance time",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Most recent publish error (truncated)",
    )

    __table_args__ = (
        CheckConstraint("attempts >= 0", name="attempts_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'PUBLISHED', 'FAILED')",
            name="status_valid",
        ),
        # Claim query: eligible PENDING rows, oldest first
        Index("ix_anpr_event_outbox_claim", "status", "next_retry_at", "created_at"),
        # Stale-lock recovery
        Index("ix_anpr_event_outbox_lock", "status", "locked_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (OutboxStatus.PUBLISHED.value, OutboxStatus.FAILED.value)

    def __repr__(self) -> str:
        return (
            f"OutboxRecord(id={self.id}, event_id={self.event_id}, "
            f"status={self.status}, attempts={self.attempts})"
        )


__all__ = ["OutboxRecord", "OutboxStatus"]
