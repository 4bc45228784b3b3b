"""Service layer base classes."""

from .base import BaseService

__all__ = ["BaseService"]
