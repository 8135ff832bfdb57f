from typing import Any, Dict, List

from gmaps_mcp.sdk.client import GoogleMapsClient

from .base import LANGUAGE_PROPERTY, Tool
from .validation import GeocodeReverseInput, GeocodeSearchInput, validate_input

GEOCODE_SEARCH_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "Address or location to geocode"},
        "region": {
            "type": "string",
            "description": "Region code (ISO 3166-1 alpha-2) for biasing results",
        },
        "language": LANGUAGE_PROPERTY,
    },
    "required": ["query"],
}

GEOCODE_REVERSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "lat": {"type": "number", "description": "Latitude"},
        "lng": {"type": "number", "description": "Longitude"},
        "language": LANGUAGE_PROPERTY,
    },
    "required": ["lat", "lng"],
}


def format_address_components(components: Any) -> List[Dict[str, Any]]:
    return [
        {
            "long_name": component.get("long_name"),
            "short_name": component.get("short_name"),
            "types": component.get("types"),
        }
        for component in components or []
    ]


def format_geocode_result(result: Dict[str, Any]) -> Dict[str, Any]:
    location = (result.get("geometry") or {}).get("location") or {}
    return {
        "formatted_address": result.get("formatted_address"),
        "location": {"lat": location.get("lat"), "lng": location.get("lng")},
        "address_components": format_address_components(result.get("address_components")),
        "place_id": result.get("place_id"),
        "types": result.get("types"),
    }


def format_geocode_response(response: Any) -> Dict[str, Any]:
    response = response if isinstance(response, dict) else {}
    return {
        "status": response.get("status") or "OK",
        "results": [format_geocode_result(r) for r in response.get("results") or []],
    }


def create_geocode_search_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(GeocodeSearchInput, arguments)
        response = await client.geocode(
            params.query,
            region=params.region,
            language=params.language,
        )
        return format_geocode_response(response)

    return Tool(
        name="geocode_search",
        description="Forward geocoding - convert addresses to coordinates",
        input_schema=GEOCODE_SEARCH_SCHEMA,
        handler=handler,
    )


def create_geocode_reverse_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(GeocodeReverseInput, arguments)
        response = await client.reverse_geocode(
            f"{params.lat},{params.lng}",
            language=params.language,
        )
        return format_geocode_response(response)

    return Tool(
        name="geocode_reverse",
        description="Reverse geocoding - convert coordinates to addresses",
        input_schema=GEOCODE_REVERSE_SCHEMA,
        handler=handler,
    )
