"""Distance-based ranking of listings around an origin."""

from __future__ import annotations

from typing import Callable, Iterable

from listing_geo.common.models import GeoPoint, Listing, RankedListing
from listing_geo.geo.distance import distance

DistanceFn = Callable[[GeoPoint, GeoPoint], float]


def _rank_key(ranked: RankedListing) -> tuple[int, float]:
    if ranked.distance_km is None:
        return (1, 0.0)
    return (0, ranked.distance_km)


def attach_distance(listing: Listing, origin: GeoPoint, metric: DistanceFn = distance) -> RankedListing:
    point = listing.geo_point
    if point is None:
        return RankedListing(listing=listing, distance_km=None)
    return RankedListing(listing=listing, distance_km=metric(origin, point))


def rank_by_distance(
    listings: Iterable[Listing],
    origin: GeoPoint,
    *,
    metric: DistanceFn = distance,
) -> list[RankedListing]:
    """Return listings nearest-first; listings without coordinates go last.

    ``sorted`` is stable, so ties keep their input order.
    """
    ranked = [attach_distance(listing, origin, metric) for listing in listings]
    return sorted(ranked, key=_rank_key)


def nearest(
    listings: Iterable[Listing],
    origin: GeoPoint,
    *,
    limit: int | None = None,
    max_distance_km: float | None = None,
    metric: DistanceFn = distance,
) -> list[RankedListing]:
    ranked = [item for item in rank_by_distance(listings, origin, metric=metric) if item.distance_km is not None]
    if max_distance_km is not None:
        ranked = [item for item in ranked if item.distance_km <= max_distance_km]
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
