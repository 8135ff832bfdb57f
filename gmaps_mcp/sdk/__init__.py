"""
Upstream Google Maps client and the domain error hierarchy.
"""

from gmaps_mcp.sdk.client import GoogleMapsClient, handle_google_maps_error
from gmaps_mcp.sdk.errors import (
    ConfigurationError,
    GoogleMapsAPIError,
    MapsServerError,
    RateLimitError,
    ValidationError,
)

__all__ = [
    "GoogleMapsClient",
    "handle_google_maps_error",
    "MapsServerError",
    "GoogleMapsAPIError",
    "ValidationError",
    "RateLimitError",
    "ConfigurationError",
]
