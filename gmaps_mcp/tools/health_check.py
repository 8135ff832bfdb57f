"""
health_check: probe each upstream service with a cheap request and report
per-service status, latency and whether the API key looks valid.
"""

import time
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from gmaps_mcp.sdk.client import GoogleMapsClient

from .base import Tool

logger = logging.getLogger("GMapsMCP.tools.health_check")

HEALTH_CHECK_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}

Probe = Callable[[], Awaitable[Any]]


def _looks_like_key_error(message: str) -> bool:
    return "API key" in message or "403" in message


def _probes(client: GoogleMapsClient) -> List[Tuple[str, Probe]]:
    return [
        ("geocoding", lambda: client.geocode("Google", region="US")),
        ("places", lambda: client.places_search_text({
            "textQuery": "restaurant",
            "maxResultCount": 1,
            "languageCode": "en",
        })),
        ("routes", lambda: client.compute_routes({
            "origin": {"location": {"latLng": {"latitude": 37.7749, "longitude": -122.4194}}},
            "destination": {"location": {"latLng": {"latitude": 37.7849, "longitude": -122.4094}}},
            "travelMode": "DRIVE",
        })),
        ("elevation", lambda: client.get_elevation(locations="39.7391536,-104.9847034")),
        ("timezone", lambda: client.get_timezone("39.6034810,-119.6822510", int(time.time()))),
        ("geolocation", lambda: client.geolocate(consider_ip=True)),
    ]


async def run_health_check(client: GoogleMapsClient) -> Dict[str, Any]:
    services: Dict[str, Dict[str, Any]] = {}
    api_key_valid = True
    healthy = True

    for name, probe in _probes(client):
        started = time.monotonic()
        try:
            await probe()
        except Exception as exc:
            message = str(exc)
            logger.warning("Health probe %s failed: %s", name, message)
            services[name] = {"status": "error", "error": message}
            healthy = False
            if _looks_like_key_error(message):
                api_key_valid = False
            continue
        services[name] = {
            "status": "ok",
            "response_time_ms": int((time.monotonic() - started) * 1000),
        }

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "api_key_valid": api_key_valid,
        "services": services,
    }


def create_health_check_tool(client: GoogleMapsClient) -> Tool:
    async def handler(arguments: Any) -> Dict[str, Any]:
        return await run_health_check(client)

    return Tool(
        name="health_check",
        description="Check API key validity and service availability",
        input_schema=HEALTH_CHECK_SCHEMA,
        handler=handler,
    )
