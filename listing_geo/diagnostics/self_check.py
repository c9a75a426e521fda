"""End-to-end self-check of the near-you feature: location, distance, ranking."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from listing_geo.common.errors import LocationError
from listing_geo.common.logging import log_event
from listing_geo.common.models import GeoPoint, Listing
from listing_geo.geo.distance import distance
from listing_geo.geo.location import Geolocator
from listing_geo.geo.ranking import rank_by_distance

NEW_YORK = GeoPoint(40.7128, -74.0060)
LOS_ANGELES = GeoPoint(34.0522, -118.2437)
NY_LA_RANGE_KM = (3935.0, 3945.0)

SCENARIO_LISTINGS = (
    Listing(id="1", title="Property in LA", latitude=34.0522, longitude=-118.2437),
    Listing(id="2", title="Property in Chicago", latitude=41.8781, longitude=-87.6298),
    Listing(id="3", title="Property in Boston", latitude=42.3601, longitude=-71.0589),
    Listing(id="4", title="Property without coordinates"),
)
SCENARIO_EXPECTED_ORDER = ("3", "2", "1", "4")


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SelfCheckReport:
    checks: list[CheckResult]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    def to_dict(self) -> dict[str, Any]:
        return {"passed": self.passed, "checks": [asdict(check) for check in self.checks]}


def check_geolocation(geolocator: Geolocator) -> CheckResult:
    try:
        point = geolocator.acquire()
    except LocationError as exc:
        return CheckResult("geolocation", False, {"error_code": exc.error_code, "error": str(exc)})
    return CheckResult("geolocation", True, point.to_dict())


def check_distance() -> CheckResult:
    km = distance(NEW_YORK, LOS_ANGELES)
    low, high = NY_LA_RANGE_KM
    return CheckResult("distance", low <= km <= high, {"new_york_to_los_angeles_km": km})


def check_ranking() -> CheckResult:
    ranked = rank_by_distance(SCENARIO_LISTINGS, NEW_YORK)
    order = tuple(item.id for item in ranked)
    return CheckResult(
        "ranking",
        order == SCENARIO_EXPECTED_ORDER,
        {"order": [{"title": item.listing.title, "distance_km": item.distance_km} for item in ranked]},
    )


def run_self_check(
    geolocator: Geolocator | None,
    logger: logging.Logger,
    *,
    run_id: str | None = None,
) -> SelfCheckReport:
    checks: list[CheckResult] = []
    if geolocator is not None:
        checks.append(check_geolocation(geolocator))
    checks.append(check_distance())
    checks.append(check_ranking())

    for check in checks:
        log_event(
            logger,
            f"{check.name} check {'passed' if check.passed else 'failed'}",
            level=logging.INFO if check.passed else logging.ERROR,
            run_id=run_id,
            job="self-check",
            event="CHECK",
            status="ok" if check.passed else "error",
        )
    return SelfCheckReport(checks=checks)
