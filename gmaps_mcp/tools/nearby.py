"""
nearby_find: cities, towns, points of interest or custom place types around
an origin given as coordinates or as an address (geocoded first).
"""

import math
from typing import Any, Dict, List, Optional

from gmaps_mcp.sdk.client import GoogleMapsClient
from gmaps_mcp.sdk.errors import MapsServerError

from .base import (
    LANGUAGE_PROPERTY,
    MAX_RESULTS_PROPERTY,
    REGION_PROPERTY,
    WAYPOINT_SCHEMA,
    Tool,
    circle_bias,
)
from .validation import LatLng, NearbyFindInput, validate_input

EARTH_RADIUS_METERS = 6371000.0
DEFAULT_RADIUS_METERS = 30000
DEFAULT_MAX_RESULTS = 20

CATEGORY_TYPES = {
    "cities": ["locality", "administrative_area_level_3", "administrative_area_level_2"],
    "towns": ["locality", "sublocality", "administrative_area_level_3"],
    "pois": ["tourist_attraction", "point_of_interest", "establishment"],
}

NEARBY_FIND_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "origin": {**WAYPOINT_SCHEMA, "description": "Origin location (coordinates or address)"},
        "what": {
            "type": "string",
            "enum": ["cities", "towns", "pois", "custom"],
            "description": "Type of places to find",
        },
        "included_types": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Specific place types to include (for custom searches)",
        },
        "radius_meters": {"type": "number", "description": "Search radius in meters (default: 30000)"},
        "max_results": {**MAX_RESULTS_PROPERTY, "description": "Maximum number of results (default: 20)"},
        "language": LANGUAGE_PROPERTY,
        "region": REGION_PROPERTY,
    },
    "required": ["origin", "what"],
}


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def types_for_category(what: str) -> List[str]:
    return list(CATEGORY_TYPES.get(what, []))


async def resolve_origin(
    client: GoogleMapsClient,
    origin: Any,
    language: Optional[str] = None,
    region: Optional[str] = None,
) -> Dict[str, float]:
    if isinstance(origin, LatLng):
        return {"lat": origin.lat, "lng": origin.lng}

    response = await client.geocode(origin.address, region=region, language=language)
    results = response.get("results") if isinstance(response, dict) else None
    if not results:
        raise MapsServerError(
            "GEOCODING_FAILED",
            f"Could not geocode address: {origin.address}",
            {"address": origin.address},
        )
    location = (results[0].get("geometry") or {}).get("location") or {}
    return {"lat": location.get("lat"), "lng": location.get("lng")}


def _place_entry(place: Dict[str, Any], origin: Dict[str, float], kind: str) -> Dict[str, Any]:
    location = place.get("location") or {}
    lat = location.get("latitude") or 0
    lng = location.get("longitude") or 0
    distance = haversine_distance(origin["lat"], origin["lng"], lat, lng)
    return {
        "id": place.get("id"),
        "name": (place.get("displayName") or {}).get("text") or place.get("name"),
        "kind": kind,
        "location": {"lat": lat, "lng": lng},
        "distance_meters": round(distance),
        "formatted_address": place.get("formattedAddress"),
    }


def create_nearby_find_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(NearbyFindInput, arguments)
        origin = await resolve_origin(client, params.origin, params.language, params.region)
        radius = params.radius_meters or DEFAULT_RADIUS_METERS
        max_results = params.max_results or DEFAULT_MAX_RESULTS
        bias = circle_bias(origin["lat"], origin["lng"], radius)

        results: List[Dict[str, Any]] = []
        if params.what in ("cities", "towns"):
            response = await client.places_search_text({
                "textQuery": "city" if params.what == "cities" else "town",
                "locationBias": bias,
                "rankPreference": "DISTANCE",
                "maxResultCount": max_results,
                "languageCode": params.language,
                "regionCode": params.region,
            })
            kind = "locality" if params.what == "cities" else "town"
            places = response.get("places") if isinstance(response, dict) else None
            for place in places or []:
                entry = _place_entry(place, origin, kind)
                # Text search only biases toward the circle.
                if entry["distance_meters"] <= radius:
                    results.append(entry)
        else:
            response = await client.places_nearby_search({
                "locationRestriction": bias,
                "includedTypes": params.included_types or types_for_category(params.what),
                "maxResultCount": max_results,
                "languageCode": params.language,
                "regionCode": params.region,
            })
            places = response.get("places") if isinstance(response, dict) else None
            for place in places or []:
                entry = _place_entry(place, origin, (place.get("types") or ["place"])[0])
                entry["rating"] = place.get("rating")
                entry["price_level"] = place.get("priceLevel")
                results.append(entry)

        results.sort(key=lambda entry: entry["distance_meters"])
        return {
            "origin": origin,
            "results": results[:max_results],
            "search_params": {
                "what": params.what,
                "radius_meters": radius,
                "included_types": params.included_types,
            },
        }

    return Tool(
        name="nearby_find",
        description="Find nearby cities, towns, POIs, or custom places from a location or address",
        input_schema=NEARBY_FIND_SCHEMA,
        handler=handler,
    )
