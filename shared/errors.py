"""
Shared error handling for the feature flag exporter.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class ExporterError(Exception):
    """Base exception for the exporter."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(ExporterError):
    """Missing or invalid startup configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class FetchError(ExporterError):
    """A read against the remote feature flag API failed.

    Transport failures, non-200 responses, undecodable bodies and timeouts
    all end up here. The endpoint is always known; the status code only when
    a response was received.
    """

    def __init__(
        self,
        endpoint: str,
        reason: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.endpoint = endpoint
        self.reason = reason
        self.status_code = status_code
        merged = {"endpoint": endpoint, "reason": reason}
        if status_code is not None:
            merged["status_code"] = status_code
        merged.update(details or {})
        if status_code is not None:
            message = f"API request failed with status {status_code} for endpoint {endpoint}"
        else:
            message = f"API request to {endpoint} failed: {reason}"
        super().__init__("FETCH_ERROR", message, merged)
