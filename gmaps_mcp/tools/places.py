"""
Places (New) tools: text search, nearby search, autocomplete, details and
photo URLs. Upstream place objects are flattened by ``transform_place`` into
the same compact shape for every tool.
"""

from typing import Any, Dict, Optional

from gmaps_mcp.sdk.client import GoogleMapsClient

from .base import (
    LANGUAGE_PROPERTY,
    LAT_LNG_SCHEMA,
    LOCATION_BIAS_SCHEMA,
    MAX_RESULTS_PROPERTY,
    REGION_PROPERTY,
    Tool,
    circle_bias,
)
from .validation import (
    LocationBias,
    PlacesAutocompleteInput,
    PlacesDetailsInput,
    PlacesNearbyInput,
    PlacesPhotosInput,
    PlacesSearchTextInput,
    validate_input,
)

DEFAULT_MAX_RESULTS = 20
DEFAULT_DETAILS_FIELD_MASK = (
    "id,displayName,formattedAddress,location,rating,priceLevel,types,"
    "regularOpeningHours,photos,reviews,websiteUri,nationalPhoneNumber"
)
PRICE_LEVELS = {
    0: "PRICE_LEVEL_FREE",
    1: "PRICE_LEVEL_INEXPENSIVE",
    2: "PRICE_LEVEL_MODERATE",
    3: "PRICE_LEVEL_EXPENSIVE",
    4: "PRICE_LEVEL_VERY_EXPENSIVE",
}

STRING_LIST = {"type": "array", "items": {"type": "string"}}

PLACES_SEARCH_TEXT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "Text query to search for places"},
        "included_types": {**STRING_LIST, "description": "Types of places to include in results"},
        "excluded_types": {**STRING_LIST, "description": "Types of places to exclude from results"},
        "open_now": {"type": "boolean", "description": "Only return places that are open now"},
        "price_levels": {
            "type": "array",
            "items": {"type": "number"},
            "description": "Price levels to include (0-4)",
        },
        "min_rating": {"type": "number", "description": "Minimum rating (0-5)"},
        "location_bias": LOCATION_BIAS_SCHEMA,
        "rank_preference": {
            "type": "string",
            "enum": ["RELEVANCE", "DISTANCE"],
            "description": "How to rank results",
        },
        "language": LANGUAGE_PROPERTY,
        "region": REGION_PROPERTY,
        "max_results": MAX_RESULTS_PROPERTY,
    },
    "required": ["query"],
}

PLACES_NEARBY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "location": {**LAT_LNG_SCHEMA, "description": "Center location for search"},
        "radius_meters": {"type": "number", "description": "Search radius in meters"},
        "included_types": {**STRING_LIST, "description": "Types of places to include"},
        "max_results": MAX_RESULTS_PROPERTY,
        "language": LANGUAGE_PROPERTY,
        "region": REGION_PROPERTY,
    },
    "required": ["location", "radius_meters"],
}

PLACES_AUTOCOMPLETE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "input": {"type": "string", "description": "Input text for autocomplete"},
        "session_token": {"type": "string", "description": "Session token for billing optimization"},
        "location_bias": LOCATION_BIAS_SCHEMA,
        "included_types": {**STRING_LIST, "description": "Types of places to include"},
        "language": LANGUAGE_PROPERTY,
        "region": REGION_PROPERTY,
    },
    "required": ["input"],
}

PLACES_DETAILS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "place_id": {"type": "string", "description": "Place ID to get details for"},
        "fields": {**STRING_LIST, "description": "Fields to include in response"},
        "language": LANGUAGE_PROPERTY,
        "region": REGION_PROPERTY,
        "session_token": {"type": "string", "description": "Session token from autocomplete"},
    },
    "required": ["place_id"],
}

PLACES_PHOTOS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "photo_reference": {"type": "string", "description": "Photo reference from place details"},
        "max_width": {"type": "number", "description": "Maximum width in pixels"},
        "max_height": {"type": "number", "description": "Maximum height in pixels"},
    },
    "required": ["photo_reference"],
}


def price_level_name(level: int) -> str:
    return PRICE_LEVELS.get(level, "PRICE_LEVEL_UNSPECIFIED")


def transform_place(place: Any) -> Dict[str, Any]:
    place = place if isinstance(place, dict) else {}
    location = place.get("location") or {}
    hours = place.get("regularOpeningHours")
    return {
        "id": place.get("id"),
        "name": (place.get("displayName") or {}).get("text") or place.get("name"),
        "location": {"lat": location.get("latitude"), "lng": location.get("longitude")},
        "formatted_address": place.get("formattedAddress"),
        "rating": place.get("rating"),
        "price_level": place.get("priceLevel"),
        "types": place.get("types"),
        "opening_hours": (
            {"open_now": hours.get("openNow"), "periods": hours.get("periods")}
            if hours
            else None
        ),
        "photos": [photo.get("name") for photo in place.get("photos") or []],
    }


def _location_bias(bias: Optional[LocationBias]) -> Optional[Dict[str, Any]]:
    if bias is None:
        return None
    if bias.circle is not None:
        circle = bias.circle
        return circle_bias(circle.center.lat, circle.center.lng, circle.radius_meters)
    if bias.rectangle is not None:
        low, high = bias.rectangle.low, bias.rectangle.high
        return {
            "rectangle": {
                "low": {"latitude": low.lat, "longitude": low.lng},
                "high": {"latitude": high.lat, "longitude": high.lng},
            }
        }
    return None


def create_places_search_text_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(PlacesSearchTextInput, arguments)
        body: Dict[str, Any] = {
            "textQuery": params.query,
            "languageCode": params.language,
            "regionCode": params.region,
            "maxResultCount": params.max_results or DEFAULT_MAX_RESULTS,
            "excludedTypes": params.excluded_types,
            "openNow": params.open_now,
            "minRating": params.min_rating or None,
            "locationBias": _location_bias(params.location_bias),
            "rankPreference": params.rank_preference,
        }
        if params.included_types:
            # Text search accepts a single included type.
            body["includedType"] = params.included_types[0]
        if params.price_levels is not None:
            body["priceLevels"] = [price_level_name(level) for level in params.price_levels]

        response = await client.places_search_text(body)
        response = response if isinstance(response, dict) else {}
        return {
            "places": [transform_place(p) for p in response.get("places") or []],
            "next_page_token": response.get("nextPageToken"),
        }

    return Tool(
        name="places_search_text",
        description="Search for places using text query with filters",
        input_schema=PLACES_SEARCH_TEXT_SCHEMA,
        handler=handler,
    )


def create_places_nearby_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(PlacesNearbyInput, arguments)
        response = await client.places_nearby_search({
            "locationRestriction": circle_bias(
                params.location.lat, params.location.lng, params.radius_meters
            ),
            "includedTypes": params.included_types,
            "maxResultCount": params.max_results or DEFAULT_MAX_RESULTS,
            "languageCode": params.language,
            "regionCode": params.region,
        })
        response = response if isinstance(response, dict) else {}
        return {"places": [transform_place(p) for p in response.get("places") or []]}

    return Tool(
        name="places_nearby",
        description="Search for places near a specific location",
        input_schema=PLACES_NEARBY_SCHEMA,
        handler=handler,
    )


def _suggestion(suggestion: Dict[str, Any]) -> Dict[str, Any]:
    prediction = suggestion.get("placePrediction") or {}
    structured = prediction.get("structuredFormat") or {}
    return {
        "place_id": prediction.get("placeId"),
        "description": (prediction.get("text") or {}).get("text"),
        "structured_formatting": {
            "main_text": (structured.get("mainText") or {}).get("text"),
            "secondary_text": (structured.get("secondaryText") or {}).get("text"),
        },
        "types": prediction.get("types"),
    }


def create_places_autocomplete_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(PlacesAutocompleteInput, arguments)
        response = await client.places_autocomplete({
            "input": params.input,
            "sessionToken": params.session_token,
            "languageCode": params.language,
            "regionCode": params.region,
            "locationBias": _location_bias(params.location_bias),
            "includedPrimaryTypes": params.included_types,
        })
        response = response if isinstance(response, dict) else {}
        return {"suggestions": [_suggestion(s) for s in response.get("suggestions") or []]}

    return Tool(
        name="places_autocomplete",
        description="Get place suggestions for autocomplete",
        input_schema=PLACES_AUTOCOMPLETE_SCHEMA,
        handler=handler,
    )


def create_places_details_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(PlacesDetailsInput, arguments)
        field_mask = ",".join(params.fields) if params.fields else DEFAULT_DETAILS_FIELD_MASK
        response = await client.places_details(
            params.place_id,
            field_mask=field_mask,
            language_code=params.language,
            region_code=params.region,
            session_token=params.session_token,
        )
        return transform_place(response)

    return Tool(
        name="places_details",
        description="Get detailed information about a place",
        input_schema=PLACES_DETAILS_SCHEMA,
        handler=handler,
    )


def create_places_photos_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        params = validate_input(PlacesPhotosInput, arguments)
        return {
            "photo_url": client.get_place_photo_url(
                params.photo_reference, params.max_width, params.max_height
            ),
            "photo_reference": params.photo_reference,
            "max_width": params.max_width,
            "max_height": params.max_height,
        }

    return Tool(
        name="places_photos",
        description="Get signed URLs for place photos",
        input_schema=PLACES_PHOTOS_SCHEMA,
        handler=handler,
    )
