"""Operator endpoints for inspecting and re-driving the outbox.

Authentication is enforced upstream of the service.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from alpr_service.core.dependencies.database import get_db_session
from alpr_service.core.exceptions import NotFoundException
from alpr_service.core.schemas import ProblemDetails
from alpr_service.features.outbox.schemas import (
    OutboxRecentResponse,
    OutboxRecordResponse,
    OutboxSummaryResponse,
)
from alpr_service.infra.events.outbox.models import OutboxStatus
from alpr_service.infra.events.outbox.repository import OutboxRepository, clamp_recent_limit

router = APIRouter(prefix="/admin/outbox", tags=["outbox-admin"])

logger = logging.getLogger(__name__)


def get_outbox_repository() -> OutboxRepository:
    return OutboxRepository()


@router.get(
    "/summary",
    response_model=OutboxSummaryResponse,
    summary="Outbox counts per status",
)
async def outbox_summary(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    repo: Annotated[OutboxRepository, Depends(get_outbox_repository)],
) -> OutboxSummaryResponse:
    counts = await repo.summary(session)
    return OutboxSummaryResponse(counts=counts, total=sum(counts.values()))


@router.get(
    "/recent",
    response_model=OutboxRecentResponse,
    summary="Most recent outbox records",
    description="Newest first. `limit` is clamped to 1..200.",
)
async def outbox_recent(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    repo: Annotated[OutboxRepository, Depends(get_outbox_repository)],
    status: Annotated[OutboxStatus | None, Query(description="Filter by status")] = None,
    limit: Annotated[int, Query(description="Maximum records to return")] = 50,
) -> OutboxRecentResponse:
    records = await repo.recent(session, status=status, limit=limit)
    return OutboxRecentResponse(
        items=[OutboxRecordResponse.model_validate(r) for r in records],
        limit=clamp_recent_limit(limit),
    )


@router.post(
    "/{record_id}/retry",
    response_model=OutboxRecordResponse,
    summary="Reset an outbox record for redelivery",
    description=(
        "Moves the record back to PENDING with zero attempts and clears its "
        "retry schedule, lock and last error."
    ),
    responses={404: {"model": ProblemDetails, "description": "Record not found"}},
)
async def outbox_retry(
    record_id: str,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    repo: Annotated[OutboxRepository, Depends(get_outbox_repository)],
) -> OutboxRecordResponse:
    async with session.begin():
        record = await repo.reset_for_retry(session, record_id)
        if record is None:
            raise NotFoundException(
                detail=f"Outbox record {record_id} not found",
                type="outbox-record-not-found",
                extra={"record_id": record_id},
            )
        response = OutboxRecordResponse.model_validate(record)

    logger.info("Outbox record reset by operator", extra={"record_id": record_id})
    return response
