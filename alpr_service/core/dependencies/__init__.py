"""FastAPI dependencies."""

from .database import get_db_session
from .messaging import BrokerClientDep, get_broker

__all__ = ["BrokerClientDep", "get_broker", "get_db_session"]
