import logging
from typing import Any, Dict, Optional

from gmaps_mcp.core.config import ServerConfig
from gmaps_mcp.sdk.client import GoogleMapsClient
from gmaps_mcp.sdk.errors import MapsServerError

from .base import LANGUAGE_PROPERTY, REGION_PROPERTY, Tool
from .geocoding import format_address_components
from .utilities import format_geolocation
from .validation import IpGeolocateInput, validate_input

logger = logging.getLogger("GMapsMCP.tools.ip_geolocate")

IP_GEOLOCATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "reverse_geocode": {
            "type": "boolean",
            "description": "Whether to reverse geocode the location to get address",
        },
        "language": {**LANGUAGE_PROPERTY, "description": "Language code (ISO 639-1) for address results"},
        "region": {**REGION_PROPERTY, "description": "Region code (ISO 3166-1 alpha-2) for address results"},
        "ip_override": {
            "type": "string",
            "description": "IP address to override (best effort, requires server configuration)",
        },
    },
}


async def _normalized_address(
    client: GoogleMapsClient,
    location: Dict[str, Any],
    language: Optional[str],
) -> Optional[Dict[str, Any]]:
    # Reverse geocoding is best effort; a failure never fails the lookup.
    try:
        response = await client.reverse_geocode(
            f"{location['lat']},{location['lng']}",
            language=language,
        )
    except MapsServerError as exc:
        logger.warning("Reverse geocoding failed: %s", exc)
        return None
    results = response.get("results") if isinstance(response, dict) else None
    if not results:
        return None
    first = results[0]
    return {
        "formatted_address": first.get("formatted_address"),
        "address_components": format_address_components(first.get("address_components")),
    }


def create_ip_geolocate_tool(client: GoogleMapsClient, config: ServerConfig) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(IpGeolocateInput, arguments)

        ip_override = None
        if params.ip_override:
            if config.ip_override_enabled:
                ip_override = params.ip_override
            else:
                logger.warning("IP override requested but not enabled in server configuration")

        response = await client.geolocate(consider_ip=True, ip_override=ip_override)
        location = format_geolocation(response)

        normalized_address = None
        if params.reverse_geocode:
            normalized_address = await _normalized_address(client, location, params.language)

        return {
            "method": "geolocation_api_ip",
            "approximate": True,
            "location": location,
            "normalized_address": normalized_address,
            "source": {
                "provider": "google",
                "reverse_geocode": bool(params.reverse_geocode),
                "ip_override_attempted": ip_override is not None,
            },
        }

    return Tool(
        name="ip_geolocate",
        description="Geolocate IP address using Google Geolocation API with optional reverse geocoding",
        input_schema=IP_GEOLOCATE_SCHEMA,
        handler=handler,
    )
