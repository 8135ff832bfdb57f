from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

ToolHandler = Callable[[Any], Awaitable[Any]]

# Shared JSON schema fragments
LANGUAGE_PROPERTY = {"type": "string", "description": "Language code (ISO 639-1)"}
REGION_PROPERTY = {"type": "string", "description": "Region code (ISO 3166-1 alpha-2)"}
MAX_RESULTS_PROPERTY = {"type": "number", "description": "Maximum number of results (1-20)"}
LAT_LNG_SCHEMA = {
    "type": "object",
    "properties": {"lat": {"type": "number"}, "lng": {"type": "number"}},
    "required": ["lat", "lng"],
}
WAYPOINT_SCHEMA = {
    "oneOf": [
        LAT_LNG_SCHEMA,
        {
            "type": "object",
            "properties": {"address": {"type": "string"}},
            "required": ["address"],
        },
    ]
}
LOCATION_BIAS_SCHEMA = {
    "type": "object",
    "description": "Location bias, e.g. {circle: {center: {lat, lng}, radius_meters}}",
}


@dataclass
class Tool:
    """A named MCP tool: JSON schema advertised to clients plus its handler."""
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def circle_bias(center_lat: float, center_lng: float, radius: float) -> Dict[str, Any]:
    """Places (New) circle in its wire shape."""
    return {
        "circle": {
            "center": {"latitude": center_lat, "longitude": center_lng},
            "radius": radius,
        }
    }
