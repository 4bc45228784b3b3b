"""ALPR event database model."""

from __future__ import annotations

from sqlalchemy import Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from alpr_service.core.database import Base, CreatedAtMixin, UUIDv7PKMixin


class AnprEvent(Base, UUIDv7PKMixin, CreatedAtMixin):
    """A single plate read reported by a camera.

    Written once together with its outbox record and never modified.
    """

    __tablename__ = "anpr_events"

    plate: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Recognized plate text",
    )
    confidence: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Recognition confidence reported by the camera",
    )
    image_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Reference to the captured image, if any",
    )
    camera_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Authenticated camera identifier",
    )

    __table_args__ = (
        Index("ix_anpr_events_camera_created", "camera_id", "created_at"),
        Index("ix_anpr_events_plate", "plate"),
    )

    def __repr__(self) -> str:
        return f"AnprEvent(id={self.id}, plate={self.plate!r}, camera_id={self.camera_id!r})"
