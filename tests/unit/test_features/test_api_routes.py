"""HTTP tests for ingestion, outbox admin, health and metrics endpoints."""

from __future__ import annotations

import pytest

from alpr_service.infra.events.outbox import OutboxStatus
from tests.utils import insert_event

WEBHOOK = "/api/v1/webhook/anpr"
ADMIN = "/api/v1/admin/outbox"


@pytest.mark.unit
class TestWebhook:
    async def test_ingest_returns_created_event(self, client) -> None:
        response = await client.post(
            WEBHOOK,
            json={"plate": "ABC1234", "confidence": 0.92, "imageUrl": "https://img/1.jpg"},
            headers={"X-Camera-Id": "cam-7"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["plate"] == "ABC1234"
        assert body["confidence"] == 0.92
        assert body["cameraId"] == "cam-7"
        assert body["imageUrl"] == "https://img/1.jpg"
        assert body["id"]
        assert body["createdAt"].endswith("Z")

    async def test_ingest_queues_outbox_record(self, client) -> None:
        await client.post(
            WEBHOOK,
            json={"plate": "ABC1234", "confidence": 0.92},
            headers={"X-Camera-Id": "cam-7"},
        )

        summary = (await client.get(f"{ADMIN}/summary")).json()
        assert summary["counts"]["PENDING"] == 1
        assert summary["total"] == 1

    @pytest.mark.parametrize("headers", [{}, {"X-Camera-Id": "   "}])
    async def test_missing_camera_id(self, client, headers) -> None:
        response = await client.post(
            WEBHOOK, json={"plate": "ABC1234", "confidence": 0.9}, headers=headers
        )

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["type"] == "camera-id-missing"

    @pytest.mark.parametrize(
        "payload",
        [
            {"plate": "", "confidence": 0.9},
            {"confidence": 0.9},
            {"plate": "ABC1234"},
            {"plate": "X" * 33, "confidence": 0.9},
        ],
    )
    async def test_invalid_body(self, client, payload) -> None:
        response = await client.post(WEBHOOK, json=payload, headers={"X-Camera-Id": "cam-1"})

        assert response.status_code == 422
        assert response.json()["errors"]


@pytest.mark.unit
class TestOutboxAdmin:
    async def test_summary_empty(self, client) -> None:
        response = await client.get(f"{ADMIN}/summary")

        assert response.status_code == 200
        assert response.json() == {
            "counts": {"PENDING": 0, "PROCESSING": 0, "PUBLISHED": 0, "FAILED": 0},
            "total": 0,
        }

    async def test_recent_filters_and_clamps(self, client, session_factory) -> None:
        await insert_event(session_factory)
        failed = await insert_event(session_factory, status=OutboxStatus.FAILED, attempts=10)

        response = await client.get(f"{ADMIN}/recent", params={"status": "FAILED", "limit": 500})

        assert response.status_code == 200
        body = response.json()
        assert body["limit"] == 200
        assert [item["id"] for item in body["items"]] == [failed.id]
        assert body["items"][0]["status"] == "FAILED"
        assert body["items"][0]["attempts"] == 10

    async def test_recent_rejects_unknown_status(self, client) -> None:
        response = await client.get(f"{ADMIN}/recent", params={"status": "LOST"})
        assert response.status_code == 422

    async def test_retry_resets_record(self, client, session_factory) -> None:
        record = await insert_event(session_factory, status=OutboxStatus.FAILED, attempts=10)

        response = await client.post(f"{ADMIN}/{record.id}/retry")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == record.id
        assert body["status"] == "PENDING"
        assert body["attempts"] == 0
        assert body["last_error"] is None
        assert body["next_retry_at"] is None

    async def test_retry_unknown_record(self, client) -> None:
        response = await client.post(f"{ADMIN}/missing-id/retry")

        assert response.status_code == 404
        assert response.json()["type"] == "outbox-record-not-found"


@pytest.mark.unit
class TestHealthAndMetrics:
    async def test_liveness(self, client) -> None:
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json()["alive"] is True

    async def test_broker_health_disconnected(self, client) -> None:
        response = await client.get("/api/v1/health/broker")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["is_connected"] is False

    async def test_broker_health_connected(self, client, broker_client) -> None:
        await broker_client.ensure_connected(timeout=1)

        response = await client.get("/api/v1/health/broker")

        assert response.status_code == 200
        assert response.json()["state"] == "connected"
        assert response.json()["connect_count"] == 1

    async def test_metrics_exposition(self, client) -> None:
        await client.post(
            WEBHOOK,
            json={"plate": "ABC1234", "confidence": 0.92},
            headers={"X-Camera-Id": "cam-metrics"},
        )

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert 'anpr_events_ingested_total{camera_id="cam-metrics"}' in response.text
        assert "outbox_records_published_total" in response.text
