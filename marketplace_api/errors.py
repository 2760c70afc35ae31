"""Error taxonomy shared by services and routes.

Every failure is rendered as ``{"error": message, "details": ...}`` by the
exception handlers registered in `marketplace_api.main`.
"""

from typing import Any


class ApiError(RuntimeError):
    """Base class for failures that map to an HTTP status."""

    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ApiError):
    """Missing required field, enum violation or duplicate unique key."""

    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class UpstreamError(ApiError):
    """Transcription/processing API call failed or returned non-success."""

    status_code = 500


class StorageError(ApiError):
    status_code = 500
