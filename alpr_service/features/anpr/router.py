"""API router for ALPR ingestion."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from alpr_service.core.dependencies.database import get_db_session
from alpr_service.core.exceptions import BadRequestException
from alpr_service.core.schemas import ProblemDetails
from alpr_service.features.anpr.schemas import AnprEventCreate, AnprEventResponse
from alpr_service.features.anpr.service import AnprEventWriter

router = APIRouter(prefix="/webhook", tags=["anpr"])

logger = logging.getLogger(__name__)


def get_camera_id(
    x_camera_id: Annotated[str | None, Header(alias="X-Camera-Id")] = None,
) -> str:
    """Camera identity, authenticated by the upstream gateway."""
    camera_id = (x_camera_id or "").strip()
    if not camera_id:
        raise BadRequestException(
            detail="Missing X-Camera-Id header",
            type="camera-id-missing",
        )
    return camera_id


@router.post(
    "/anpr",
    response_model=AnprEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest a plate read",
    description=(
        "Store an ALPR event and queue it for delivery. The event and its "
        "outbox record are written atomically; the broker is not contacted."
    ),
    responses={
        400: {"model": ProblemDetails, "description": "Missing camera identity"},
        503: {"model": ProblemDetails, "description": "Store unavailable"},
    },
)
async def ingest_anpr_event(
    payload: AnprEventCreate,
    camera_id: Annotated[str, Depends(get_camera_id)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> AnprEventResponse:
    writer = AnprEventWriter(session)
    event = await writer.record_event(
        plate=payload.plate,
        confidence=payload.confidence,
        camera_id=camera_id,
        image_url=payload.image_url,
    )
    return AnprEventResponse.model_validate(event)
