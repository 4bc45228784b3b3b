"""Prometheus scrape endpoint.

Endpoints:
    GET /metrics - Prometheus text exposition of the service registry

Metrics Exposed:
    Ingestion:
        - anpr_events_ingested_total - Events written, by camera
        - anpr_events_ingest_failures_total - Rolled back ingestion transactions

    Outbox:
        - outbox_records_{claimed,published,retried,failed}_total
        - outbox_result_conflicts_total - Results discarded after lock reclaim
        - outbox_ticks_skipped_total - Ticks skipped while a pass was running
        - outbox_pass_duration_seconds - Claim/publish pass latency

    Messaging:
        - rabbitmq_connection_state - 0/1/2 for disconnected/connecting/connected
        - rabbitmq_reconnects_total - Reconnections after the first connect
        - rabbitmq_connect_failures_total - Failed connect attempts
        - rabbitmq_messages_published_total - Messages confirmed by the broker
        - rabbitmq_messages_consumed_total - Consumer outcomes (acked/failed/rejected)
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from alpr_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
