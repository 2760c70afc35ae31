"""Common schemas used across the API."""

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format.

    Format: { "error": str, "details": object | null }
    """

    error: str
    details: Any = None


class MessageResponse(BaseModel):
    success: bool
    message: str
