from listing_geo.common.models import GeoPoint, Listing
from listing_geo.geo.ranking import nearest, rank_by_distance

NEW_YORK = GeoPoint(40.7128, -74.0060)


def _scenario():
    return [
        Listing(id="1", title="Property in LA", latitude=34.0522, longitude=-118.2437),
        Listing(id="2", title="Property in Chicago", latitude=41.8781, longitude=-87.6298),
        Listing(id="3", title="Property in Boston", latitude=42.3601, longitude=-71.0589),
        Listing(id="4", title="Property without coordinates"),
    ]


def test_rank_by_distance_scenario_order():
    ranked = rank_by_distance(_scenario(), NEW_YORK)

    assert [item.listing.title for item in ranked] == [
        "Property in Boston",
        "Property in Chicago",
        "Property in LA",
        "Property without coordinates",
    ]
    assert ranked[-1].distance_km is None


def test_rank_by_distance_puts_untagged_last_and_ascends():
    listings = [
        Listing(id="a"),
        Listing(id="b", latitude=41.0, longitude=-74.0),
        Listing(id="c", latitude=10.0),
        Listing(id="d", latitude=40.7128, longitude=-74.0060),
        Listing(id="e", longitude=-70.0),
    ]

    ranked = rank_by_distance(listings, NEW_YORK)
    distances = [item.distance_km for item in ranked]
    numeric = [d for d in distances if d is not None]

    assert distances[: len(numeric)] == numeric
    assert numeric == sorted(numeric)
    assert all(d is None for d in distances[len(numeric) :])
    assert [item.id for item in ranked] == ["d", "b", "a", "c", "e"]


def test_rank_by_distance_is_stable_for_ties():
    listings = [
        Listing(id="first", latitude=42.0, longitude=-71.0),
        Listing(id="untagged-1"),
        Listing(id="second", latitude=42.0, longitude=-71.0),
        Listing(id="untagged-2"),
    ]

    ranked = rank_by_distance(listings, NEW_YORK)

    assert [item.id for item in ranked] == ["first", "second", "untagged-1", "untagged-2"]


def test_rank_by_distance_does_not_mutate_input():
    listings = _scenario()
    snapshot = list(listings)

    rank_by_distance(listings, NEW_YORK)

    assert listings == snapshot


def test_zero_coordinate_counts_as_present():
    ranked = rank_by_distance([Listing(id="null-island", latitude=0.0, longitude=0.0)], GeoPoint(0.0, 1.0))
    assert ranked[0].distance_km is not None


def test_nearest_filters_and_limits():
    ranked = nearest(_scenario(), NEW_YORK, limit=2)
    assert [item.id for item in ranked] == ["3", "2"]

    within = nearest(_scenario(), NEW_YORK, max_distance_km=500)
    assert [item.id for item in within] == ["3"]
