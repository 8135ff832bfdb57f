"""
Async client for the Google Maps Platform REST APIs.

Every cacheable call follows the same pipeline: build a deterministic cache
key, return a live cached value if there is one, otherwise run the HTTP call
under the retry policy and store the result. Autocomplete and geolocation
depend on session/caller context and are never cached.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, NoReturn, Optional
from urllib.parse import quote, urlencode

import httpx

from gmaps_mcp.version import __version__
from gmaps_mcp.core.cache import BoundedCache, create_key
from gmaps_mcp.core.retry import RetryPolicy
from gmaps_mcp.sdk.errors import GoogleMapsAPIError, RateLimitError

logger = logging.getLogger("GMapsMCP.sdk.client")

MAPS_API_BASE = "https://maps.googleapis.com/maps/api"
PLACES_API_BASE = "https://places.googleapis.com/v1"
ROUTES_API_BASE = "https://routes.googleapis.com"
GEOLOCATION_URL = "https://www.googleapis.com/geolocation/v1/geolocate"

PLACES_SEARCH_FIELD_MASK = (
    "places.id,places.displayName,places.formattedAddress,places.location,"
    "places.rating,places.priceLevel,places.types,places.regularOpeningHours,places.photos"
)
ROUTES_FIELD_MASK = (
    "routes.duration,routes.distanceMeters,routes.polyline,routes.legs,routes.travelAdvisory"
)
ROUTE_MATRIX_FIELD_MASK = (
    "originIndex,destinationIndex,duration,distanceMeters,status,condition"
)

_NAME_RESOLUTION_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
)


def _compact(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _decode_payload(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_detail(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    for key in ("error_message", "message"):
        if isinstance(data.get(key), str):
            return data[key]
    nested = data.get("error")
    if isinstance(nested, dict) and isinstance(nested.get("message"), str):
        return nested["message"]
    return None


def _network_error_code(exc: httpx.HTTPError) -> Optional[str]:
    if isinstance(exc, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if any(hint in text for hint in _NAME_RESOLUTION_HINTS):
            return "ENOTFOUND"
        return "ECONNREFUSED"
    return None


def handle_google_maps_error(exc: BaseException, endpoint: str) -> NoReturn:
    """
    Translate an httpx failure into a domain error and raise it.

    HTTP 429 becomes RateLimitError (carrying Retry-After seconds); any other
    HTTP status becomes GoogleMapsAPIError with the status and response body.
    Transport failures keep a network error code so the retry policy can
    recognise them.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        data = _decode_payload(exc.response)
        message = f"Google Maps API error: {status}"
        detail = _error_detail(data)
        if detail:
            message += f" - {detail}"

        if status == 429:
            raw_retry_after = exc.response.headers.get("retry-after")
            try:
                retry_after = float(raw_retry_after) if raw_retry_after else None
            except ValueError:
                retry_after = None
            raise RateLimitError(message, retry_after=retry_after, status=status) from exc

        raise GoogleMapsAPIError(
            message,
            status=status,
            endpoint=endpoint,
            context={"response_data": data},
        ) from exc

    if isinstance(exc, httpx.HTTPError):
        network_error = _network_error_code(exc)
        if network_error is not None:
            raise GoogleMapsAPIError(
                f"Network error connecting to Google Maps API: {exc}",
                endpoint=endpoint,
                network_error=network_error,
            ) from exc

    raise GoogleMapsAPIError(f"Unexpected error: {exc}", endpoint=endpoint) from exc


class GoogleMapsClient:
    """
    Usage:
        async with GoogleMapsClient(api_key, cache) as client:
            data = await client.geocode("1600 Amphitheatre Parkway")
    """

    def __init__(
        self,
        api_key: str,
        cache: Optional[BoundedCache] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.api_key = api_key
        self.cache = cache if cache is not None else BoundedCache(enabled=False)
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers={"User-Agent": f"gmaps-mcp/{__version__}", "Accept": "application/json"},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GoogleMapsClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _goog_headers(self, field_mask: Optional[str] = None) -> Dict[str, str]:
        headers = {"X-Goog-Api-Key": self.api_key}
        if field_mask:
            headers["X-Goog-FieldMask"] = field_mask
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method=method,
                url=url,
                params=_compact(params) if params else None,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            handle_google_maps_error(exc, endpoint)
        return _decode_payload(response)

    async def _with_retry(self, call: Callable[[], Awaitable[Any]]) -> Any:
        return await self.retry_policy.run(call)

    async def _cached(
        self,
        prefix: str,
        key_params: Mapping[str, Any],
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        key = create_key(prefix, key_params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached
        result = await self._with_retry(call)
        self.cache.set(key, result)
        return result

    # Legacy web-service APIs (key as query parameter)

    async def geocode(
        self,
        address: str,
        region: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Any:
        query = {"address": address, "region": region, "language": language}
        return await self._cached(
            "geocode",
            query,
            lambda: self._request(
                "GET",
                f"{MAPS_API_BASE}/geocode/json",
                endpoint="geocode",
                params={**query, "key": self.api_key},
            ),
        )

    async def reverse_geocode(self, latlng: str, language: Optional[str] = None) -> Any:
        query = {"latlng": latlng, "language": language}
        return await self._cached(
            "reverse_geocode",
            query,
            lambda: self._request(
                "GET",
                f"{MAPS_API_BASE}/geocode/json",
                endpoint="reverse_geocode",
                params={**query, "key": self.api_key},
            ),
        )

    async def get_elevation(
        self,
        locations: Optional[str] = None,
        path: Optional[str] = None,
        samples: Optional[int] = None,
    ) -> Any:
        query = {"locations": locations, "path": path, "samples": samples}
        return await self._cached(
            "elevation",
            query,
            lambda: self._request(
                "GET",
                f"{MAPS_API_BASE}/elevation/json",
                endpoint="elevation",
                params={**query, "key": self.api_key},
            ),
        )

    async def get_timezone(
        self,
        location: str,
        timestamp: int,
        language: Optional[str] = None,
    ) -> Any:
        query = {"location": location, "timestamp": timestamp, "language": language}
        return await self._cached(
            "timezone",
            query,
            lambda: self._request(
                "GET",
                f"{MAPS_API_BASE}/timezone/json",
                endpoint="timezone",
                params={**query, "key": self.api_key},
            ),
        )

    # Places API (New)

    async def places_search_text(self, body: Dict[str, Any]) -> Any:
        body = _compact(body)
        return await self._cached(
            "places_search_text",
            body,
            lambda: self._request(
                "POST",
                f"{PLACES_API_BASE}/places:searchText",
                endpoint="places_search_text",
                json_body=body,
                headers=self._goog_headers(PLACES_SEARCH_FIELD_MASK),
            ),
        )

    async def places_nearby_search(self, body: Dict[str, Any]) -> Any:
        body = _compact(body)
        return await self._cached(
            "places_nearby",
            body,
            lambda: self._request(
                "POST",
                f"{PLACES_API_BASE}/places:searchNearby",
                endpoint="places_nearby",
                json_body=body,
                headers=self._goog_headers(PLACES_SEARCH_FIELD_MASK),
            ),
        )

    async def places_autocomplete(self, body: Dict[str, Any]) -> Any:
        body = _compact(body)
        return await self._with_retry(
            lambda: self._request(
                "POST",
                f"{PLACES_API_BASE}/places:autocomplete",
                endpoint="places_autocomplete",
                json_body=body,
                headers=self._goog_headers(),
            )
        )

    async def places_details(
        self,
        place_id: str,
        field_mask: Optional[str] = None,
        language_code: Optional[str] = None,
        region_code: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> Any:
        # The session token only affects billing, so it stays out of the key.
        key_params = {
            "placeId": place_id,
            "fieldMask": field_mask,
            "languageCode": language_code,
            "regionCode": region_code,
        }
        return await self._cached(
            "places_details",
            key_params,
            lambda: self._request(
                "GET",
                f"{PLACES_API_BASE}/places/{quote(place_id, safe='')}",
                endpoint="places_details",
                params={
                    "languageCode": language_code,
                    "regionCode": region_code,
                    "sessionToken": session_token,
                },
                headers=self._goog_headers(field_mask),
            ),
        )

    # Routes API v2

    async def compute_routes(self, body: Dict[str, Any]) -> Any:
        body = _compact(body)
        return await self._cached(
            "compute_routes",
            body,
            lambda: self._request(
                "POST",
                f"{ROUTES_API_BASE}/directions/v2:computeRoutes",
                endpoint="compute_routes",
                json_body=body,
                headers=self._goog_headers(ROUTES_FIELD_MASK),
            ),
        )

    async def compute_route_matrix(self, body: Dict[str, Any]) -> Any:
        body = _compact(body)
        return await self._cached(
            "compute_route_matrix",
            body,
            lambda: self._request(
                "POST",
                f"{ROUTES_API_BASE}/distanceMatrix/v2:computeRouteMatrix",
                endpoint="compute_route_matrix",
                json_body=body,
                headers=self._goog_headers(ROUTE_MATRIX_FIELD_MASK),
            ),
        )

    # Geolocation API

    async def geolocate(
        self,
        consider_ip: Optional[bool] = None,
        wifi_access_points: Optional[List[Dict[str, Any]]] = None,
        cell_towers: Optional[List[Dict[str, Any]]] = None,
        ip_override: Optional[str] = None,
    ) -> Any:
        body = _compact({
            "considerIp": consider_ip,
            "wifiAccessPoints": wifi_access_points,
            "cellTowers": cell_towers,
        })
        headers = {"X-Forwarded-For": ip_override} if ip_override else None
        return await self._with_retry(
            lambda: self._request(
                "POST",
                GEOLOCATION_URL,
                endpoint="geolocate",
                params={"key": self.api_key},
                json_body=body,
                headers=headers,
            )
        )

    # Signed URL builders (no request is made)

    def get_street_view_url(
        self,
        size: str,
        location: Optional[str] = None,
        pano: Optional[str] = None,
        heading: Optional[float] = None,
        fov: Optional[float] = None,
        pitch: Optional[float] = None,
    ) -> str:
        query = _compact({
            "key": self.api_key,
            "size": size,
            "location": location,
            "pano": pano,
            "heading": heading,
            "fov": fov,
            "pitch": pitch,
        })
        return f"{MAPS_API_BASE}/streetview?{urlencode(query)}"

    def get_place_photo_url(
        self,
        photo_reference: str,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
    ) -> str:
        query = _compact({
            "key": self.api_key,
            "photo_reference": photo_reference,
            "maxwidth": max_width,
            "maxheight": max_height,
        })
        return f"{MAPS_API_BASE}/place/photo?{urlencode(query)}"
