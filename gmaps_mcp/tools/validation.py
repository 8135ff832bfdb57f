"""
Tool input models.

Each tool validates its raw ``arguments`` object against one of these models
before touching the network. The first failing constraint is reported as a
VALIDATION_ERROR whose ``field`` is the dotted path to the offending value.
"""

import json
import ipaddress
from typing import Any, List, Literal, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gmaps_mcp.sdk.errors import ValidationError

M = TypeVar("M", bound=BaseModel)

TravelMode = Literal["DRIVE", "WALK", "BICYCLE", "TRANSIT"]
RoutingPreference = Literal["TRAFFIC_UNAWARE", "TRAFFIC_AWARE", "TRAFFIC_AWARE_OPTIMAL"]
Avoidance = Literal["tolls", "highways", "ferries"]
Units = Literal["metric", "imperial"]


class _Input(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)


class LatLng(_Input):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Address(_Input):
    address: str = Field(min_length=1)


Waypoint = Union[LatLng, Address]


class Circle(_Input):
    center: LatLng
    radius_meters: float = Field(gt=0)


class Rectangle(_Input):
    low: LatLng
    high: LatLng


class LocationBias(_Input):
    circle: Optional[Circle] = None
    rectangle: Optional[Rectangle] = None


class _Localized(_Input):
    language: Optional[str] = Field(default=None, min_length=2, max_length=2)
    region: Optional[str] = Field(default=None, min_length=2, max_length=2)


class GeocodeSearchInput(_Localized):
    query: str = Field(min_length=1, max_length=500)


class GeocodeReverseInput(_Input):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    language: Optional[str] = Field(default=None, min_length=2, max_length=2)


class PlacesSearchTextInput(_Localized):
    query: str = Field(min_length=1, max_length=500)
    included_types: Optional[List[str]] = Field(default=None, max_length=50)
    excluded_types: Optional[List[str]] = Field(default=None, max_length=50)
    open_now: Optional[bool] = None
    price_levels: Optional[List[int]] = Field(default=None, max_length=5)
    min_rating: Optional[float] = Field(default=None, ge=0, le=5)
    location_bias: Optional[LocationBias] = None
    rank_preference: Optional[Literal["RELEVANCE", "DISTANCE"]] = None
    max_results: Optional[int] = Field(default=None, ge=1, le=20)

    @field_validator("price_levels")
    @classmethod
    def _price_levels_in_range(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and any(level < 0 or level > 4 for level in value):
            raise ValueError("price levels must be between 0 and 4")
        return value


class PlacesNearbyInput(_Localized):
    location: LatLng
    radius_meters: float = Field(gt=0, le=50000)
    included_types: Optional[List[str]] = Field(default=None, max_length=50)
    max_results: Optional[int] = Field(default=None, ge=1, le=20)


class PlacesAutocompleteInput(_Localized):
    input: str = Field(min_length=1, max_length=500)
    session_token: Optional[str] = None
    location_bias: Optional[LocationBias] = None
    included_types: Optional[List[str]] = Field(default=None, max_length=50)


class PlacesDetailsInput(_Localized):
    place_id: str = Field(min_length=1)
    fields: Optional[List[str]] = None
    session_token: Optional[str] = None


class PlacesPhotosInput(_Input):
    photo_reference: str = Field(min_length=1)
    max_width: Optional[int] = Field(default=None, gt=0, le=1600)
    max_height: Optional[int] = Field(default=None, gt=0, le=1600)


class _RouteOptions(_Localized):
    travel_mode: Optional[TravelMode] = None
    routing_preference: Optional[RoutingPreference] = None
    avoid: Optional[List[Avoidance]] = None
    units: Optional[Units] = None
    departure_time: Optional[str] = None


class RoutesComputeInput(_RouteOptions):
    origin: Waypoint
    destination: Waypoint
    waypoints: Optional[List[Waypoint]] = Field(default=None, max_length=25)
    arrival_time: Optional[str] = None


class RoutesMatrixInput(_RouteOptions):
    origins: List[Waypoint] = Field(min_length=1, max_length=25)
    destinations: List[Waypoint] = Field(min_length=1, max_length=25)


class ElevationGetInput(_Input):
    locations: Optional[List[LatLng]] = Field(default=None, max_length=512)
    path: Optional[str] = None
    samples: Optional[int] = Field(default=None, ge=1, le=512)

    @model_validator(mode="after")
    def _locations_or_path(self) -> "ElevationGetInput":
        if not self.locations and not self.path:
            raise ValueError("Either 'locations' or 'path' must be provided")
        return self


class TimezoneGetInput(_Input):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    timestamp: int = Field(gt=0)
    language: Optional[str] = Field(default=None, min_length=2, max_length=2)


class WifiAccessPoint(_Input):
    mac_address: str
    signal_strength: Optional[float] = None
    age: Optional[float] = None
    channel: Optional[float] = None
    signal_to_noise: Optional[float] = None


class CellTower(_Input):
    cell_id: int
    location_area_code: int
    mobile_country_code: int
    mobile_network_code: int
    age: Optional[float] = None
    signal_strength: Optional[float] = None
    timing_advance: Optional[float] = None


class GeolocationEstimateInput(_Input):
    wifi_access_points: Optional[List[WifiAccessPoint]] = None
    cell_towers: Optional[List[CellTower]] = None
    consider_ip: Optional[bool] = None


class NearbyFindInput(_Localized):
    origin: Waypoint
    what: Literal["cities", "towns", "pois", "custom"]
    included_types: Optional[List[str]] = Field(default=None, max_length=50)
    radius_meters: Optional[float] = Field(default=None, gt=0, le=50000)
    max_results: Optional[int] = Field(default=None, ge=1, le=20)


def is_private_or_reserved_ip(value: str) -> bool:
    """Anything that is not a routable public unicast address counts as private."""
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


class IpGeolocateInput(_Localized):
    reverse_geocode: Optional[bool] = None
    ip_override: Optional[str] = None

    @field_validator("ip_override")
    @classmethod
    def _public_ip_only(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ipaddress.ip_address(value)
        except ValueError:
            raise ValueError("Invalid IP address") from None
        if is_private_or_reserved_ip(value):
            raise ValueError("IP override cannot be a private or reserved IP address")
        return value


def validate_input(model: Type[M], arguments: Any) -> M:
    """Parse ``arguments`` into ``model`` or raise ValidationError for the first issue."""
    try:
        # Strict nested models accept objects only from JSON, not Python dicts.
        return model.model_validate_json(json.dumps(arguments if arguments is not None else {}))
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Validation failed: {first['msg']}", field=field or None) from exc
