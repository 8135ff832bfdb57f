"""
gmaps-mcp: Google Maps Platform tools for MCP clients over stdio
"""

from gmaps_mcp.core.config import ServerConfig
from gmaps_mcp.mcp.server import McpServer, StdioTransport
from gmaps_mcp.sdk import (
    ConfigurationError,
    GoogleMapsAPIError,
    GoogleMapsClient,
    MapsServerError,
    RateLimitError,
    ValidationError,
)
from gmaps_mcp.version import __version__

__all__ = [
    "__version__",
    "ServerConfig",
    "McpServer",
    "StdioTransport",
    "GoogleMapsClient",
    "MapsServerError",
    "GoogleMapsAPIError",
    "ValidationError",
    "RateLimitError",
    "ConfigurationError",
]
