"""Broker client dependency for FastAPI route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from alpr_service.infra.messaging.client import BrokerClient, get_broker_client


def get_broker() -> BrokerClient:
    """Process-wide broker client (override in tests)."""
    return get_broker_client()


BrokerClientDep = Annotated[BrokerClient, Depends(get_broker)]
