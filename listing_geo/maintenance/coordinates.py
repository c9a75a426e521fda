"""Coordinate maintenance jobs over the listing collection.

Each job reads the whole collection first; a failed read aborts the job with a
``Failure``. Listings are then processed one at a time and every write waits
on the throttle. A failed write is logged, counted and skipped.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from listing_geo.common.models import GeoPoint, Listing, ListingCoordinateStatus
from listing_geo.common.result import Result
from listing_geo.maintenance.batch import Throttle, fetch_listings, run_job, write_each
from listing_geo.store.documents import DocumentStore

JITTER_DEGREES = 0.05

DEFAULT_SAMPLE_CITIES: dict[str, GeoPoint] = {
    "New York": GeoPoint(40.7128, -74.0060),
    "Los Angeles": GeoPoint(34.0522, -118.2437),
    "Chicago": GeoPoint(41.8781, -87.6298),
    "Houston": GeoPoint(29.7604, -95.3698),
    "Phoenix": GeoPoint(33.4484, -112.0740),
    "Philadelphia": GeoPoint(39.9526, -75.1652),
    "San Antonio": GeoPoint(29.4241, -98.4936),
    "San Diego": GeoPoint(32.7157, -117.1611),
    "Dallas": GeoPoint(32.7767, -96.7970),
    "San Jose": GeoPoint(37.3382, -121.8863),
    "Austin": GeoPoint(30.2672, -97.7431),
    "Jacksonville": GeoPoint(30.3322, -81.6557),
    "Fort Worth": GeoPoint(32.7555, -97.3308),
    "Columbus": GeoPoint(39.9612, -82.9988),
    "Charlotte": GeoPoint(35.2271, -80.8431),
    "San Francisco": GeoPoint(37.7749, -122.4194),
    "Indianapolis": GeoPoint(39.7684, -86.1581),
    "Seattle": GeoPoint(47.6062, -122.3321),
    "Denver": GeoPoint(39.7392, -104.9903),
    "Boston": GeoPoint(42.3601, -71.0589),
}


@dataclass(frozen=True)
class BackfillReport:
    updated: int
    skipped: int
    failed: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ClearReport:
    updated: int
    failed: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AuditReport:
    with_coords: int
    without_coords: int
    total: int
    listings: list[ListingCoordinateStatus] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "with_coords": self.with_coords,
            "without_coords": self.without_coords,
            "total": self.total,
            "listings": [status.to_dict() for status in self.listings],
        }


def sample_cities_from_config(cities_cfg: Mapping[str, Mapping[str, Any]]) -> dict[str, GeoPoint]:
    return {
        name: GeoPoint(float(coords["latitude"]), float(coords["longitude"]))
        for name, coords in cities_cfg.items()
    }


def random_coordinates(
    cities: Mapping[str, GeoPoint] | None = None,
    rng: random.Random | None = None,
) -> tuple[str, GeoPoint]:
    """Pick a sample city and jitter it by up to 0.05 degrees on each axis."""
    cities = cities or DEFAULT_SAMPLE_CITIES
    rng = rng or random.Random()
    city = rng.choice(sorted(cities))
    base = cities[city]
    lat = base.latitude + rng.uniform(-JITTER_DEGREES, JITTER_DEGREES)
    lon = base.longitude + rng.uniform(-JITTER_DEGREES, JITTER_DEGREES)
    return city, GeoPoint(max(-90.0, min(90.0, lat)), max(-180.0, min(180.0, lon)))


def backfill_coordinates(
    store: DocumentStore,
    collection_id: str,
    *,
    throttle: Throttle,
    logger: logging.Logger,
    cities: Mapping[str, GeoPoint] | None = None,
    rng: random.Random | None = None,
    run_id: str | None = None,
) -> Result[BackfillReport]:
    rng = rng or random.Random()

    def _update(listing: Listing) -> dict[str, Any] | None:
        if listing.has_coordinates:
            return None
        _city, point = random_coordinates(cities, rng)
        return point.to_dict()

    def _body() -> BackfillReport:
        listings = fetch_listings(store, collection_id)
        updated, skipped, failed = write_each(
            store,
            collection_id,
            listings,
            job="backfill",
            build_update=_update,
            throttle=throttle,
            logger=logger,
            run_id=run_id,
        )
        return BackfillReport(updated=updated, skipped=skipped, failed=failed, total=len(listings))

    return run_job("backfill", _body, logger=logger, run_id=run_id)


def clear_coordinates(
    store: DocumentStore,
    collection_id: str,
    *,
    throttle: Throttle,
    logger: logging.Logger,
    run_id: str | None = None,
) -> Result[ClearReport]:
    def _update(listing: Listing) -> dict[str, Any] | None:
        if not listing.has_any_coordinate:
            return None
        return {"latitude": None, "longitude": None}

    def _body() -> ClearReport:
        listings = fetch_listings(store, collection_id)
        updated, _skipped, failed = write_each(
            store,
            collection_id,
            listings,
            job="clear",
            build_update=_update,
            throttle=throttle,
            logger=logger,
            run_id=run_id,
        )
        return ClearReport(updated=updated, failed=failed, total=len(listings))

    return run_job("clear", _body, logger=logger, run_id=run_id)


def audit_coordinates(
    store: DocumentStore,
    collection_id: str,
    *,
    logger: logging.Logger,
    run_id: str | None = None,
) -> Result[AuditReport]:
    def _body() -> AuditReport:
        listings = fetch_listings(store, collection_id)
        statuses = [
            ListingCoordinateStatus(
                id=listing.id,
                title=listing.title,
                has_coords=listing.has_coordinates,
                latitude=listing.latitude,
                longitude=listing.longitude,
            )
            for listing in listings
        ]
        with_coords = sum(1 for status in statuses if status.has_coords)
        return AuditReport(
            with_coords=with_coords,
            without_coords=len(statuses) - with_coords,
            total=len(statuses),
            listings=statuses,
        )

    return run_job("audit", _body, logger=logger, run_id=run_id)
