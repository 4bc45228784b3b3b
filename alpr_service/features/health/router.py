"""Health check API endpoints.

- Liveness: /health/live - Is the process alive?
- Broker: /health/broker - Is this process connected to RabbitMQ?
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Response, status

from alpr_service.core.dependencies.messaging import BrokerClientDep  # noqa: TC001
from alpr_service.core.settings import get_app_settings
from alpr_service.features.health.schemas import BrokerHealthResponse, LivenessResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Returns 200 if the service process is alive and responsive",
)
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(
        alive=True,
        timestamp=datetime.now(UTC),
        service=get_app_settings().service_name,
    )


@router.get(
    "/broker",
    response_model=BrokerHealthResponse,
    summary="Broker connection status",
    description="Returns 200 when connected to RabbitMQ, 503 otherwise",
    responses={503: {"model": BrokerHealthResponse, "description": "Not connected"}},
)
async def broker_health(client: BrokerClientDep, response: Response) -> BrokerHealthResponse:
    """Report state, reconnect count and last error of the shared client.

    Never triggers a connection attempt.
    """
    result = client.health()
    if not result["is_connected"]:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return BrokerHealthResponse(**result)
