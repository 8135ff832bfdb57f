import re
from typing import Any, Dict, List, Optional

from gmaps_mcp.sdk.client import GoogleMapsClient

from .base import LANGUAGE_PROPERTY, REGION_PROPERTY, WAYPOINT_SCHEMA, Tool
from .validation import LatLng, RoutesComputeInput, RoutesMatrixInput, Waypoint, validate_input

DEFAULT_TRAVEL_MODE = "DRIVE"
DEFAULT_ROUTING_PREFERENCE = "TRAFFIC_AWARE"

_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)s?\s*$")

_ROUTE_OPTION_PROPERTIES: Dict[str, Any] = {
    "travel_mode": {
        "type": "string",
        "enum": ["DRIVE", "WALK", "BICYCLE", "TRANSIT"],
        "description": "Mode of transportation",
    },
    "routing_preference": {
        "type": "string",
        "enum": ["TRAFFIC_UNAWARE", "TRAFFIC_AWARE", "TRAFFIC_AWARE_OPTIMAL"],
        "description": "Routing preference for traffic",
    },
    "avoid": {
        "type": "array",
        "items": {"type": "string", "enum": ["tolls", "highways", "ferries"]},
        "description": "Features to avoid",
    },
    "language": LANGUAGE_PROPERTY,
    "region": REGION_PROPERTY,
    "units": {
        "type": "string",
        "enum": ["metric", "imperial"],
        "description": "Unit system for results",
    },
    "departure_time": {"type": "string", "description": "Departure time (ISO 8601)"},
}

ROUTES_COMPUTE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "origin": {**WAYPOINT_SCHEMA, "description": "Starting point (coordinates or address)"},
        "destination": {**WAYPOINT_SCHEMA, "description": "End point (coordinates or address)"},
        "waypoints": {
            "type": "array",
            "items": WAYPOINT_SCHEMA,
            "description": "Intermediate stops along the route",
        },
        **_ROUTE_OPTION_PROPERTIES,
        "arrival_time": {"type": "string", "description": "Arrival time (ISO 8601, transit only)"},
    },
    "required": ["origin", "destination"],
}

ROUTES_MATRIX_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "origins": {"type": "array", "items": WAYPOINT_SCHEMA, "description": "Origin locations"},
        "destinations": {
            "type": "array",
            "items": WAYPOINT_SCHEMA,
            "description": "Destination locations",
        },
        **_ROUTE_OPTION_PROPERTIES,
    },
    "required": ["origins", "destinations"],
}


def transform_waypoint(waypoint: Waypoint) -> Dict[str, Any]:
    if isinstance(waypoint, LatLng):
        return {"location": {"latLng": {"latitude": waypoint.lat, "longitude": waypoint.lng}}}
    return {"address": waypoint.address}


def parse_duration(value: Any) -> Optional[int]:
    """Routes API durations are strings like ``"1234s"``."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = _DURATION_RE.match(str(value))
    if match is None:
        return None
    return int(float(match.group(1)))


def _location(value: Any) -> Any:
    if isinstance(value, dict) and "latLng" in value:
        lat_lng = value["latLng"] or {}
        return {"lat": lat_lng.get("latitude"), "lng": lat_lng.get("longitude")}
    return value


def _route_modifiers(avoid: Optional[List[str]]) -> Optional[Dict[str, bool]]:
    if not avoid:
        return None
    modifiers = {}
    for feature, key in (("tolls", "avoidTolls"), ("highways", "avoidHighways"), ("ferries", "avoidFerries")):
        if feature in avoid:
            modifiers[key] = True
    return modifiers


def _matrix_origin(waypoint: Waypoint, modifiers: Optional[Dict[str, bool]]) -> Dict[str, Any]:
    # Matrix requests carry route modifiers per origin.
    origin: Dict[str, Any] = {"waypoint": transform_waypoint(waypoint)}
    if modifiers:
        origin["routeModifiers"] = modifiers
    return origin


def _routing_preference(travel_mode: str, preference: Optional[str]) -> Optional[str]:
    # The API rejects a routing preference for anything but DRIVE and TWO_WHEELER.
    if travel_mode != "DRIVE":
        return None
    return preference or DEFAULT_ROUTING_PREFERENCE


def _tolls(advisory: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    toll_info = advisory.get("tollInfo")
    if not toll_info:
        return None
    prices = toll_info.get("estimatedPrice") or [{}]
    first = prices[0] or {}
    try:
        estimated = float(first.get("units") or 0) + (first.get("nanos") or 0) / 1e9
    except (TypeError, ValueError):
        estimated = 0.0
    return {"currency": first.get("currencyCode"), "estimated": estimated}


def transform_route(route: Dict[str, Any]) -> Dict[str, Any]:
    advisory = route.get("travelAdvisory") or {}
    legs = [
        {
            "start": _location(leg.get("startLocation")),
            "end": _location(leg.get("endLocation")),
            "steps": len(leg.get("steps") or []),
            "distance_meters": leg.get("distanceMeters"),
            "duration_seconds": parse_duration(leg.get("duration")) or 0,
        }
        for leg in route.get("legs") or []
    ]
    return {
        "distance_meters": route.get("distanceMeters"),
        "duration_seconds": parse_duration(route.get("duration")) or 0,
        "duration_in_traffic_seconds": parse_duration(advisory.get("durationInTraffic")),
        "polyline": (route.get("polyline") or {}).get("encodedPolyline"),
        "tolls": _tolls(advisory),
        "legs": legs,
    }


def _matrix_element(element: Dict[str, Any]) -> Dict[str, Any]:
    status = element.get("status")
    if isinstance(status, dict):
        # computeRouteMatrix reports a google.rpc.Status; an empty one means OK.
        status = status.get("message") or ("OK" if not status.get("code") else str(status.get("code")))
    return {
        "status": status or element.get("condition"),
        "distance_meters": element.get("distanceMeters"),
        "duration_seconds": parse_duration(element.get("duration")),
        "duration_in_traffic_seconds": parse_duration(element.get("durationInTraffic")),
    }


def transform_matrix(response: Any, origin_count: int, destination_count: int) -> Dict[str, Any]:
    """
    Build origin-major rows. The v2 API streams a flat list of elements keyed
    by originIndex/destinationIndex; a legacy ``rows`` payload is also accepted.
    """
    if isinstance(response, dict) and "rows" in response:
        return {
            "origin_addresses": response.get("originAddresses") or [],
            "destination_addresses": response.get("destinationAddresses") or [],
            "rows": [
                {"elements": [_matrix_element(e) for e in row.get("elements") or []]}
                for row in response.get("rows") or []
            ],
        }

    elements = response if isinstance(response, list) else []
    grid: List[List[Optional[Dict[str, Any]]]] = [
        [None] * destination_count for _ in range(origin_count)
    ]
    for element in elements:
        origin = element.get("originIndex", 0)
        destination = element.get("destinationIndex", 0)
        if 0 <= origin < origin_count and 0 <= destination < destination_count:
            grid[origin][destination] = _matrix_element(element)
    return {
        "origin_addresses": [],
        "destination_addresses": [],
        "rows": [
            {"elements": [cell or {"status": "NOT_FOUND"} for cell in row]}
            for row in grid
        ],
    }


def create_routes_compute_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(RoutesComputeInput, arguments)
        travel_mode = params.travel_mode or DEFAULT_TRAVEL_MODE
        response = await client.compute_routes({
            "origin": transform_waypoint(params.origin),
            "destination": transform_waypoint(params.destination),
            "intermediates": (
                [transform_waypoint(w) for w in params.waypoints] if params.waypoints else None
            ),
            "travelMode": travel_mode,
            "routingPreference": _routing_preference(travel_mode, params.routing_preference),
            "languageCode": params.language,
            "regionCode": params.region,
            "units": (params.units or "metric").upper(),
            "routeModifiers": _route_modifiers(params.avoid),
            "departureTime": params.departure_time,
            "arrivalTime": params.arrival_time,
        })
        response = response if isinstance(response, dict) else {}
        return {"routes": [transform_route(r) for r in response.get("routes") or []]}

    return Tool(
        name="routes_compute",
        description="Compute routes between locations with traffic, tolls, and avoidances",
        input_schema=ROUTES_COMPUTE_SCHEMA,
        handler=handler,
    )


def create_routes_matrix_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(RoutesMatrixInput, arguments)
        travel_mode = params.travel_mode or DEFAULT_TRAVEL_MODE
        modifiers = _route_modifiers(params.avoid)
        response = await client.compute_route_matrix({
            "origins": [_matrix_origin(o, modifiers) for o in params.origins],
            "destinations": [{"waypoint": transform_waypoint(d)} for d in params.destinations],
            "travelMode": travel_mode,
            "routingPreference": _routing_preference(travel_mode, params.routing_preference),
            "languageCode": params.language,
            "regionCode": params.region,
            "units": (params.units or "metric").upper(),
            "departureTime": params.departure_time,
        })
        return transform_matrix(response, len(params.origins), len(params.destinations))

    return Tool(
        name="routes_matrix",
        description="Compute distance matrix between multiple origins and destinations",
        input_schema=ROUTES_MATRIX_SCHEMA,
        handler=handler,
    )
