"""API response schemas.

This module defines the common API response envelope used by every route.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel


# Type variable for generic response types
T = TypeVar("T")


class ApiResponse[T](BaseModel):
    """Standard API response wrapper.

    Attributes:
        success: Whether the request was successful.
        data: The actual response data (when success is True).
        message: A human-readable message about the response.
        error: Error details (when success is False).
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Error API response with a predefined success value of False."""

    success: bool = False
    message: str = "An error occurred"
    error: dict[str, Any] | None = None
