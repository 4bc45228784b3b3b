"""Declarative base and shared column helpers for SQLAlchemy models.

Identifiers are UUID v7 strings: time-ordered, so ids sort in creation order
and index inserts stay sequential.
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Consistent naming convention for database constraints
# Ensures predictable names for migrations and schema management
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with consistent constraint naming."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def generate_uuid7() -> uuid.UUID:
    """Generate a UUID v7 (48-bit millisecond timestamp + random bits)."""
    timestamp_ms = int(time.time() * 1000)
    random_bytes = os.urandom(10)

    uuid_bytes = bytearray(16)
    uuid_bytes[0:6] = timestamp_ms.to_bytes(6, byteorder="big")
    uuid_bytes[6] = (random_bytes[0] & 0x0F) | 0x70  # Version 7
    uuid_bytes[7] = random_bytes[1]
    uuid_bytes[8] = (random_bytes[2] & 0x3F) | 0x80  # Variant
    uuid_bytes[9:16] = random_bytes[3:10]

    return uuid.UUID(bytes=bytes(uuid_bytes))


def new_id() -> str:
    """String form of a fresh UUID v7, used as primary key default."""
    return str(generate_uuid7())


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


class UUIDv7PKMixin:
    """UUID v7 string primary key (time-sortable)."""

    __allow_unmapped__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
        comment="UUID v7 primary key (time-sortable)",
    )


class CreatedAtMixin:
    """Creation timestamp set on the Python side.

    Records are immutable or carry explicit state timestamps, so there is no
    ``updated_at`` column.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Record creation timestamp (UTC)",
    )
