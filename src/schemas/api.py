"""API response schemas.

Every JSON (non-streaming) response of the service uses this envelope.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
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


class StoredContextData(BaseModel):
    """Payload returned after a context bundle is stored."""

    id: str = Field(..., description="Opaque id to pass as `ctx` to /generate")
    expires_in: int = Field(..., description="Seconds until the context expires")
