"""Shared Pydantic schemas."""

from .base import CustomBase
from .problem_details import ProblemDetails, ValidationErrorItem, ValidationProblemDetails

__all__ = [
    "CustomBase",
    "ProblemDetails",
    "ValidationErrorItem",
    "ValidationProblemDetails",
]
