"""Base schema classes for API responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CustomBase(BaseModel):
    """Base model with common configuration for all schemas.

    Example:
        class OutboxRecordResponse(CustomBase):
            id: str
            status: OutboxStatus
    """

    model_config = ConfigDict(
        # Allow creation from ORM models (SQLAlchemy)
        from_attributes=True,
        # Use enum values instead of names
        use_enum_values=True,
        # Populate models by field name (not alias)
        populate_by_name=True,
        # Ignore extra fields (silently drop unexpected data)
        extra="ignore",
        # Strip leading/trailing whitespace from strings
        str_strip_whitespace=True,
    )
