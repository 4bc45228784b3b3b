"""Core database package: declarative base and mixins."""

from .base import (
    NAMING_CONVENTION,
    Base,
    CreatedAtMixin,
    UUIDv7PKMixin,
    generate_uuid7,
    new_id,
    utcnow,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "CreatedAtMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
    "new_id",
    "utcnow",
]
