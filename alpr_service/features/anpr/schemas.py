"""ALPR ingestion request/response schemas and the v1 wire contract."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from alpr_service.core.schemas import CustomBase

SCHEMA_VERSION = 1
MESSAGE_TYPE = "lpr.event.created.v1"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AnprEventCreate(BaseModel):
    """Webhook body posted by a camera."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    plate: str = Field(min_length=1, max_length=32, description="Recognized plate text")
    confidence: float = Field(
        description="Recognition confidence; non-finite values are stored as 0",
        allow_inf_nan=True,
    )
    image_url: str | None = Field(
        default=None,
        max_length=2048,
        validation_alias=AliasChoices("imageUrl", "image_url"),
        description="Reference to the captured image",
    )

    @field_validator("confidence")
    @classmethod
    def _finite_confidence(cls, v: float) -> float:
        return v if math.isfinite(v) else 0.0


class AnprEventResponse(CustomBase):
    """Created event as returned to the camera."""

    id: str
    plate: str
    confidence: float
    image_url: str | None = Field(default=None, serialization_alias="imageUrl")
    camera_id: str = Field(serialization_alias="cameraId")
    created_at: datetime = Field(serialization_alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class AnprEventMessage(BaseModel):
    """Wire contract, schema version 1.

    Serialized once at ingestion time into the outbox ``payload`` column and
    published unchanged. Consumers validate incoming bodies against it.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    schema_version: Literal[1] = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    event_id: str = Field(alias="eventId", min_length=1)
    camera_id: str = Field(alias="cameraId", min_length=1)
    plate: str = Field(min_length=1)
    confidence: float
    image_url: str | None = Field(default=None, alias="imageUrl")
    created_at: datetime = Field(alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def to_payload(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
