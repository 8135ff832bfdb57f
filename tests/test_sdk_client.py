"""Tests for the Google Maps SDK client."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from gmaps_mcp.core.cache import BoundedCache
from gmaps_mcp.core.retry import RetryPolicy
from gmaps_mcp.sdk import (
    GoogleMapsAPIError,
    GoogleMapsClient,
    RateLimitError,
    handle_google_maps_error,
)


class Recorder:
    """httpx.MockTransport handler that records every request it answers."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    def query(self, index: int = -1) -> Dict[str, List[str]]:
        return parse_qs(urlparse(str(self.requests[index].url)).query)

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


async def _no_sleep(seconds: float) -> None:
    return None


def _client(recorder: Recorder, cache: BoundedCache = None, max_attempts: int = 3) -> GoogleMapsClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return GoogleMapsClient(
        "test-key",
        cache=cache,
        http_client=http_client,
        retry_policy=RetryPolicy(max_attempts=max_attempts, jitter=False, sleep=_no_sleep),
    )


def _ok(payload: Any) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(200, json=payload)


@pytest.mark.asyncio
async def test_geocode_sends_key_and_optional_params():
    recorder = Recorder(_ok({"status": "OK", "results": []}))
    client = _client(recorder)

    result = await client.geocode("Eiffel Tower", region="fr")

    assert result == {"status": "OK", "results": []}
    request = recorder.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/maps/api/geocode/json"
    query = recorder.query()
    assert query == {"address": ["Eiffel Tower"], "region": ["fr"], "key": ["test-key"]}


@pytest.mark.asyncio
async def test_cache_hit_skips_upstream():
    recorder = Recorder(_ok({"status": "OK", "results": [{"place_id": "abc"}]}))
    client = _client(recorder, cache=BoundedCache())

    first = await client.reverse_geocode("48.8,2.3")
    second = await client.reverse_geocode("48.8,2.3")
    third = await client.reverse_geocode("48.8,2.3", language="de")

    assert first == second == third
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_disabled_cache_always_calls_upstream():
    recorder = Recorder(_ok({"status": "OK"}))
    client = _client(recorder, cache=BoundedCache(enabled=False))
    await client.get_timezone("1,2", 1700000000)
    await client.get_timezone("1,2", 1700000000)
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_places_search_text_posts_body_with_field_mask():
    recorder = Recorder(_ok({"places": []}))
    client = _client(recorder)

    await client.places_search_text({"textQuery": "pizza", "languageCode": None, "maxResultCount": 5})

    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://places.googleapis.com/v1/places:searchText"
    assert request.headers["X-Goog-Api-Key"] == "test-key"
    assert "places.displayName" in request.headers["X-Goog-FieldMask"]
    assert recorder.body() == {"textQuery": "pizza", "maxResultCount": 5}


@pytest.mark.asyncio
async def test_autocomplete_and_geolocate_are_never_cached():
    recorder = Recorder(_ok({"suggestions": []}))
    client = _client(recorder, cache=BoundedCache())

    await client.places_autocomplete({"input": "pi"})
    await client.places_autocomplete({"input": "pi"})
    await client.geolocate(consider_ip=True)
    await client.geolocate(consider_ip=True)

    assert len(recorder.requests) == 4
    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_places_details_quotes_id_and_keeps_session_out_of_cache_key():
    recorder = Recorder(_ok({"id": "a/b"}))
    client = _client(recorder, cache=BoundedCache())

    await client.places_details("a/b", field_mask="id,displayName", session_token="s1")
    await client.places_details("a/b", field_mask="id,displayName", session_token="s2")

    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.url.raw_path.startswith(b"/v1/places/a%2Fb")
    assert request.headers["X-Goog-FieldMask"] == "id,displayName"
    assert recorder.query() == {"sessionToken": ["s1"]}


@pytest.mark.asyncio
async def test_geolocate_forwards_override_ip():
    recorder = Recorder(_ok({"location": {"lat": 1, "lng": 2}, "accuracy": 5000}))
    client = _client(recorder)

    await client.geolocate(consider_ip=True, ip_override="8.8.8.8")

    request = recorder.requests[0]
    assert request.headers["X-Forwarded-For"] == "8.8.8.8"
    assert recorder.query() == {"key": ["test-key"]}
    assert recorder.body() == {"considerIp": True}


@pytest.mark.asyncio
async def test_routes_use_routes_field_masks():
    recorder = Recorder(_ok({"routes": []}))
    client = _client(recorder)

    await client.compute_routes({"origin": {"address": "A"}, "destination": {"address": "B"}})
    await client.compute_route_matrix({"origins": [], "destinations": []})

    assert recorder.requests[0].url.path == "/directions/v2:computeRoutes"
    assert recorder.requests[0].headers["X-Goog-FieldMask"].startswith("routes.duration")
    assert recorder.requests[1].url.path == "/distanceMatrix/v2:computeRouteMatrix"
    assert "originIndex" in recorder.requests[1].headers["X-Goog-FieldMask"]


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_mapped():
    recorder = Recorder(lambda request: httpx.Response(503, json={"error_message": "Backend down"}))
    client = _client(recorder, max_attempts=3)

    with pytest.raises(GoogleMapsAPIError) as excinfo:
        await client.get_elevation(locations="1,2")

    err = excinfo.value
    assert len(recorder.requests) == 3
    assert err.status == 503
    assert err.code == "GOOGLE_MAPS_API_ERROR"
    assert err.message == "Google Maps API error: 503 - Backend down"
    assert err.context["endpoint"] == "elevation"
    assert err.context["response_data"] == {"error_message": "Backend down"}


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    recorder = Recorder(
        lambda request: httpx.Response(403, json={"error": {"message": "API key not valid"}})
    )
    client = _client(recorder)

    with pytest.raises(GoogleMapsAPIError) as excinfo:
        await client.places_nearby_search({"includedTypes": ["cafe"]})

    assert len(recorder.requests) == 1
    assert "API key not valid" in excinfo.value.message


@pytest.mark.asyncio
async def test_rate_limited_upstream_maps_to_rate_limit_error():
    recorder = Recorder(lambda request: httpx.Response(429, headers={"Retry-After": "2"}))
    client = _client(recorder, max_attempts=2)

    with pytest.raises(RateLimitError) as excinfo:
        await client.geocode("x")

    assert len(recorder.requests) == 2
    assert excinfo.value.retry_after == 2.0
    assert excinfo.value.status == 429


@pytest.mark.asyncio
async def test_transient_failure_recovers_and_result_is_cached():
    responses = iter([httpx.Response(500), httpx.Response(200, json={"status": "OK"})])
    recorder = Recorder(lambda request: next(responses))
    client = _client(recorder, cache=BoundedCache())

    assert await client.geocode("Oslo") == {"status": "OK"}
    assert await client.geocode("Oslo") == {"status": "OK"}
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_connection_errors_carry_network_code():
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    recorder = Recorder(refuse)
    client = _client(recorder, max_attempts=2)

    with pytest.raises(GoogleMapsAPIError) as excinfo:
        await client.geocode("Nowhere")

    assert excinfo.value.network_error == "ECONNREFUSED"
    assert len(recorder.requests) == 2


def test_handle_error_maps_timeouts_and_name_resolution():
    with pytest.raises(GoogleMapsAPIError) as timeout:
        handle_google_maps_error(httpx.ReadTimeout("timed out"), "geocode")
    assert timeout.value.network_error == "ETIMEDOUT"

    with pytest.raises(GoogleMapsAPIError) as dns:
        handle_google_maps_error(httpx.ConnectError("[Errno -2] Name or service not known"), "geocode")
    assert dns.value.network_error == "ENOTFOUND"

    with pytest.raises(GoogleMapsAPIError) as other:
        handle_google_maps_error(ValueError("weird"), "geocode")
    assert other.value.message == "Unexpected error: weird"
    assert other.value.network_error is None


def test_url_builders_do_not_make_requests():
    client = GoogleMapsClient("k&y", http_client=httpx.AsyncClient(transport=httpx.MockTransport(_ok({}))))
    photo = client.get_place_photo_url("ref123", max_width=400)
    assert photo == "https://maps.googleapis.com/maps/api/place/photo?key=k%26y&photo_reference=ref123&maxwidth=400"
    street = client.get_street_view_url("600x300", location="46.4,11.9", heading=90)
    assert street.startswith("https://maps.googleapis.com/maps/api/streetview?")
    assert "size=600x300" in street and "heading=90" in street
