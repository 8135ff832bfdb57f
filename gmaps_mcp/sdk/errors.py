"""
Google Maps MCP domain exceptions.

Every failure that should reach the client with a stable, machine-readable
code derives from MapsServerError. The dispatcher turns these into -32000
server errors and keeps the code and context in ``error.data``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class MapsServerError(Exception):
    """Base class for structured domain errors."""

    def __init__(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class GoogleMapsAPIError(MapsServerError):
    """Raised when an upstream Google Maps call fails."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        endpoint: Optional[str] = None,
        network_error: Optional[str] = None,
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.status = status
        self.endpoint = endpoint
        self.network_error = network_error
        self.retry_after = retry_after
        merged = dict(context or {})
        merged["endpoint"] = endpoint
        merged["status"] = status
        super().__init__("GOOGLE_MAPS_API_ERROR", message, merged)


class ValidationError(MapsServerError):
    """Raised when tool arguments fail validation."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__("VALIDATION_ERROR", message, {"field": field})


class RateLimitError(MapsServerError):
    """
    Raised when a local token bucket or the upstream API throttles a call.

    ``retry_after`` is expressed in seconds, matching the HTTP Retry-After
    header; ``retry_after_ms`` is the local limiter's wait estimate.
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[float] = None,
        retry_after_ms: Optional[int] = None,
        status: Optional[int] = None,
    ) -> None:
        self.retry_after = retry_after
        self.retry_after_ms = retry_after_ms
        self.status = status
        context: Dict[str, Any] = {"retryAfter": retry_after}
        if retry_after_ms is not None:
            context["retryAfterMs"] = retry_after_ms
        super().__init__("RATE_LIMIT_ERROR", message, context)


class ConfigurationError(MapsServerError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)
