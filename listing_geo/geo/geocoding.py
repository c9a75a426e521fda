"""Forward and reverse geocoding against geocode.maps.co."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from listing_geo.common.errors import ConfigError, LocationError
from listing_geo.common.http import HttpClient, HttpRequestError
from listing_geo.common.models import GeoPoint
from listing_geo.common.result import Failure, Result, Success
from listing_geo.geo.location import Geolocator

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"


class GeocodingError(HttpRequestError):
    error_code = "GEOCODING_ERROR"


@dataclass(frozen=True)
class Place:
    point: GeoPoint
    place_name: str
    full_address: str
    city: str | None = None
    country: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.point.to_dict(),
            "place_name": self.place_name,
            "full_address": self.full_address,
            "city": self.city,
            "country": self.country,
        }


def extract_place_name(full_address: str | None) -> str:
    if not full_address:
        return "Unknown Location"
    parts = [part.strip() for part in full_address.split(",")]
    if len(parts) >= 2:
        return ", ".join(parts[:2])
    return parts[0] or "Unknown Location"


def coordinates_label(point: GeoPoint) -> str:
    return f"{point.latitude:.4f}, {point.longitude:.4f}"


def _place_from_item(item: dict) -> Place:
    display_name = item.get("display_name") or ""
    return Place(
        point=GeoPoint(float(item["lat"]), float(item["lon"])),
        place_name=extract_place_name(display_name),
        full_address=display_name,
    )


class GeocodingClient:
    def __init__(
        self,
        http_client: HttpClient,
        *,
        base_url: str = "https://geocode.maps.co",
        api_key: str | None = None,
        search_limit: int = 5,
    ) -> None:
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.search_limit = search_limit

    @classmethod
    def from_config(cls, http_client: HttpClient, geocoding_cfg: dict) -> "GeocodingClient":
        return cls(
            http_client,
            base_url=geocoding_cfg["base_url"],
            api_key=geocoding_cfg.get("api_key"),
            search_limit=int(geocoding_cfg.get("search_limit", 5)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip() and self.api_key != PLACEHOLDER_API_KEY)

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        if not self.configured:
            raise ConfigError("Geocoding requires an API key (set GEOCODING_API_KEY)")
        try:
            return self.http_client.get_json(
                f"{self.base_url}/{path}",
                source_type="geocode",
                params={**params, "api_key": self.api_key, "format": "json"},
            )
        except HttpRequestError as exc:
            if exc.status_code in (401, 403):
                raise GeocodingError("Invalid geocoding API key", status_code=exc.status_code) from exc
            raise

    def geocode(self, address: str) -> Place:
        if not address or not address.strip():
            raise ValueError("Address is required")
        payload = self._get("search", {"q": address.strip(), "limit": 1})
        if not payload:
            raise GeocodingError("No location found for the provided address")
        return _place_from_item(payload[0])

    def reverse(self, point: GeoPoint) -> Place:
        payload = self._get("reverse", {"lat": point.latitude, "lon": point.longitude})
        if not payload or not payload.get("display_name"):
            raise GeocodingError("No address found for the provided coordinates")
        address = payload.get("address") or {}
        return Place(
            point=point,
            place_name=extract_place_name(payload["display_name"]),
            full_address=payload["display_name"],
            city=address.get("city") or address.get("town") or address.get("village") or "Unknown",
            country=address.get("country") or "Unknown",
        )

    def search(self, query: str, limit: int | None = None) -> list[Place]:
        if not query or len(query.strip()) < 2:
            raise ValueError("Query must be at least 2 characters long")
        payload = self._get("search", {"q": query.strip(), "limit": limit or self.search_limit})
        return [_place_from_item(item) for item in payload or []]

    def place_name_for(self, point: GeoPoint) -> str:
        """Place name for a point, or its coordinates when lookup fails."""
        try:
            return self.reverse(point).place_name
        except (HttpRequestError, ConfigError):
            return coordinates_label(point)


def locate_with_place(
    geolocator: Geolocator,
    geocoder: GeocodingClient,
    *,
    cancel: threading.Event | None = None,
) -> Result[Place]:
    try:
        point = geolocator.acquire(cancel=cancel)
    except LocationError as exc:
        return Failure.from_error(exc)

    try:
        place = geocoder.reverse(point)
    except (HttpRequestError, ConfigError):
        label = coordinates_label(point)
        return Success(Place(point=point, place_name=label, full_address=label))
    return Success(place)
