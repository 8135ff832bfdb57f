from typing import List

from gmaps_mcp.core.config import ServerConfig
from gmaps_mcp.sdk.client import GoogleMapsClient

from .base import Tool
from .geocoding import create_geocode_reverse_tool, create_geocode_search_tool
from .health_check import create_health_check_tool
from .ip_geolocate import create_ip_geolocate_tool
from .nearby import create_nearby_find_tool
from .places import (
    create_places_autocomplete_tool,
    create_places_details_tool,
    create_places_nearby_tool,
    create_places_photos_tool,
    create_places_search_text_tool,
)
from .routes import create_routes_compute_tool, create_routes_matrix_tool
from .utilities import (
    create_elevation_get_tool,
    create_geolocation_estimate_tool,
    create_timezone_get_tool,
)


def build_tools(client: GoogleMapsClient, config: ServerConfig) -> List[Tool]:
    """Every tool the server exposes, in advertisement order."""
    return [
        create_geocode_search_tool(client),
        create_geocode_reverse_tool(client),
        create_places_search_text_tool(client),
        create_places_nearby_tool(client),
        create_places_autocomplete_tool(client),
        create_places_details_tool(client),
        create_places_photos_tool(client),
        create_routes_compute_tool(client),
        create_routes_matrix_tool(client),
        create_elevation_get_tool(client),
        create_timezone_get_tool(client),
        create_geolocation_estimate_tool(client),
        create_nearby_find_tool(client),
        create_ip_geolocate_tool(client, config),
        create_health_check_tool(client),
    ]
