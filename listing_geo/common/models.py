"""Data models shared by ranking, location and maintenance jobs."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

# Appwrite system attributes kept out of Listing.fields.
_SYSTEM_KEYS = {"$id", "$collectionId", "$databaseId", "$createdAt", "$updatedAt", "$permissions", "$sequence"}


def _coerce_coordinate(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        try:
            lat = float(self.latitude)
            lon = float(self.longitude)
        except TypeError as exc:
            raise ValueError(f"non-numeric coordinates: {self.latitude!r}, {self.longitude!r}") from exc
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    def as_tuple(self) -> tuple[float, float]:
        return self.latitude, self.longitude

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class Listing:
    id: str
    title: str = ""
    latitude: float | None = None
    longitude: float | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def has_any_coordinate(self) -> bool:
        return self.latitude is not None or self.longitude is not None

    @property
    def geo_point(self) -> GeoPoint | None:
        if not self.has_coordinates:
            return None
        try:
            return GeoPoint(self.latitude, self.longitude)
        except ValueError:
            return None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Listing":
        listing_id = document.get("$id") or document.get("id")
        if listing_id is None:
            raise ValueError("document has no $id")
        extras = {
            key: value
            for key, value in document.items()
            if key not in _SYSTEM_KEYS and key not in {"id", "title", "latitude", "longitude"}
        }
        return cls(
            id=str(listing_id),
            title=str(document.get("title") or ""),
            latitude=_coerce_coordinate(document.get("latitude")),
            longitude=_coerce_coordinate(document.get("longitude")),
            fields=extras,
        )

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.fields)
        out.update({"id": self.id, "title": self.title, "latitude": self.latitude, "longitude": self.longitude})
        return out


@dataclass(frozen=True)
class RankedListing:
    listing: Listing
    distance_km: float | None

    @property
    def id(self) -> str:
        return self.listing.id

    def to_dict(self) -> dict[str, Any]:
        out = self.listing.to_dict()
        out["distance_km"] = self.distance_km
        return out


@dataclass(frozen=True)
class ListingCoordinateStatus:
    id: str
    title: str
    has_coords: bool
    latitude: float | None
    longitude: float | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
