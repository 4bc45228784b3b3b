"""ALPR event ingestion."""

from .models import AnprEvent
from .schemas import MESSAGE_TYPE, SCHEMA_VERSION, AnprEventMessage

__all__ = ["MESSAGE_TYPE", "SCHEMA_VERSION", "AnprEvent", "AnprEventMessage"]
