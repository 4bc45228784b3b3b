"""Health check response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LivenessResponse(BaseModel):
    """Liveness probe response.

    Example:
        ```json
        {
            "alive": true,
            "timestamp": "2026-01-01T00:00:00Z",
            "service": "alpr-service"
        }
        ```
    """

    alive: bool = Field(description="Liveness status")
    timestamp: datetime = Field(description="Check timestamp")
    service: str = Field(min_length=1, max_length=100, description="Service name")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "alive": True,
                "timestamp": "2026-01-01T00:00:00Z",
                "service": "alpr-service",
            }
        }
    )


class BrokerHealthResponse(BaseModel):
    """RabbitMQ connection status of this process."""

    status: str = Field(description="healthy or unhealthy")
    state: str = Field(description="disconnected, connecting or connected")
    is_connected: bool
    connect_count: int = Field(ge=0, description="Successful (re)connections so far")
    last_error: str | None = Field(default=None, description="Most recent connect/publish error")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "state": "connected",
                "is_connected": True,
                "connect_count": 1,
                "last_error": None,
            }
        }
    )
