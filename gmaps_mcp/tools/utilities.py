from typing import Any, Dict

from gmaps_mcp.sdk.client import GoogleMapsClient

from .base import LAT_LNG_SCHEMA, Tool
from .validation import (
    ElevationGetInput,
    GeolocationEstimateInput,
    TimezoneGetInput,
    validate_input,
)

ELEVATION_GET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "locations": {
            "type": "array",
            "items": LAT_LNG_SCHEMA,
            "description": "Array of locations to get elevation for",
        },
        "path": {"type": "string", "description": "Encoded polyline path to get elevation along"},
        "samples": {"type": "number", "description": "Number of samples along the path"},
    },
}

TIMEZONE_GET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "lat": {"type": "number", "description": "Latitude"},
        "lng": {"type": "number", "description": "Longitude"},
        "timestamp": {"type": "number", "description": "Unix timestamp"},
        "language": {"type": "string", "description": "Language code (ISO 639-1)"},
    },
    "required": ["lat", "lng", "timestamp"],
}

GEOLOCATION_ESTIMATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "wifi_access_points": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "mac_address": {"type": "string"},
                    "signal_strength": {"type": "number"},
                    "age": {"type": "number"},
                    "channel": {"type": "number"},
                    "signal_to_noise": {"type": "number"},
                },
                "required": ["mac_address"],
            },
            "description": "Wi-Fi access points detected by device",
        },
        "cell_towers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "cell_id": {"type": "number"},
                    "location_area_code": {"type": "number"},
                    "mobile_country_code": {"type": "number"},
                    "mobile_network_code": {"type": "number"},
                    "age": {"type": "number"},
                    "signal_strength": {"type": "number"},
                    "timing_advance": {"type": "number"},
                },
                "required": [
                    "cell_id",
                    "location_area_code",
                    "mobile_country_code",
                    "mobile_network_code",
                ],
            },
            "description": "Cell towers detected by device",
        },
        "consider_ip": {
            "type": "boolean",
            "description": "Whether to consider IP address for location (default true)",
        },
    },
}


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def format_geolocation(response: Any) -> Dict[str, Any]:
    response = response if isinstance(response, dict) else {}
    location = response.get("location") or {}
    return {
        "lat": location.get("lat"),
        "lng": location.get("lng"),
        "accuracy_radius_meters": response.get("accuracy"),
    }


def create_elevation_get_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(ElevationGetInput, arguments)
        locations = None
        if params.locations:
            locations = "|".join(f"{loc.lat},{loc.lng}" for loc in params.locations)
        response = await client.get_elevation(
            locations=locations,
            path=params.path,
            samples=params.samples if params.path else None,
        )
        response = response if isinstance(response, dict) else {}
        return {
            "status": response.get("status") or "OK",
            "results": [
                {
                    "elevation": result.get("elevation"),
                    "location": {
                        "lat": (result.get("location") or {}).get("lat"),
                        "lng": (result.get("location") or {}).get("lng"),
                    },
                    "resolution": result.get("resolution"),
                }
                for result in response.get("results") or []
            ],
        }

    return Tool(
        name="elevation_get",
        description="Get elevation data for locations or along a path",
        input_schema=ELEVATION_GET_SCHEMA,
        handler=handler,
    )


def create_timezone_get_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(TimezoneGetInput, arguments)
        response = await client.get_timezone(
            f"{params.lat},{params.lng}",
            params.timestamp,
            language=params.language,
        )
        response = response if isinstance(response, dict) else {}
        return {
            "status": response.get("status") or "OK",
            "timezone_id": response.get("timeZoneId"),
            "timezone_name": response.get("timeZoneName"),
            "dst_offset": response.get("dstOffset"),
            "raw_offset": response.get("rawOffset"),
        }

    return Tool(
        name="timezone_get",
        description="Get timezone information for a location at a specific time",
        input_schema=TIMEZONE_GET_SCHEMA,
        handler=handler,
    )


def create_geolocation_estimate_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(GeolocationEstimateInput, arguments)
        wifi = None
        if params.wifi_access_points is not None:
            wifi = [
                _drop_none({
                    "macAddress": ap.mac_address,
                    "signalStrength": ap.signal_strength,
                    "age": ap.age,
                    "channel": ap.channel,
                    "signalToNoiseRatio": ap.signal_to_noise,
                })
                for ap in params.wifi_access_points
            ]
        towers = None
        if params.cell_towers is not None:
            towers = [
                _drop_none({
                    "cellId": tower.cell_id,
                    "locationAreaCode": tower.location_area_code,
                    "mobileCountryCode": tower.mobile_country_code,
                    "mobileNetworkCode": tower.mobile_network_code,
                    "age": tower.age,
                    "signalStrength": tower.signal_strength,
                    "timingAdvance": tower.timing_advance,
                })
                for tower in params.cell_towers
            ]
        response = await client.geolocate(
            consider_ip=params.consider_ip is not False,
            wifi_access_points=wifi,
            cell_towers=towers,
        )
        return {"location": format_geolocation(response)}

    return Tool(
        name="geolocation_estimate",
        description="Estimate device location from Wi-Fi and cell tower data",
        input_schema=GEOLOCATION_ESTIMATE_SCHEMA,
        handler=handler,
    )
