from __future__ import annotations

import threading

import pytest
import requests

from listing_geo.common.errors import (
    LocationCancelled,
    LocationPermissionDenied,
    LocationTimeout,
    LocationUnavailable,
    LocationUnsupported,
)
from listing_geo.common.http import HttpClient, HttpRequestError, RetryConfig
from listing_geo.common.models import GeoPoint
from listing_geo.common.result import ErrorKind, Failure, Success
from listing_geo.geo.location import (
    Geolocator,
    IpPositionProvider,
    Position,
    PositionCache,
    PositionError,
    PositionErrorCode,
    PositionOptions,
    StaticPositionProvider,
    acquire_current_location,
    build_provider,
    locate,
)

NEW_YORK = GeoPoint(40.7128, -74.0060)


class SilentProvider:
    """Never calls back."""

    def __init__(self):
        self.calls = 0

    def get_current_position(self, success, failure, options):
        self.calls += 1


class LateProvider:
    """Calls back from a thread once released."""

    def __init__(self):
        self.release = threading.Event()
        self.finished = threading.Event()

    def get_current_position(self, success, failure, options):
        def _later():
            self.release.wait(5)
            success(Position(coords=NEW_YORK))
            failure(PositionError(PositionErrorCode.POSITION_UNAVAILABLE))
            self.finished.set()

        threading.Thread(target=_later, daemon=True).start()


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_default_options():
    options = PositionOptions()
    assert options.enable_high_accuracy is True
    assert options.timeout == 10.0
    assert options.maximum_age == 300.0


def test_acquire_returns_provider_point():
    assert acquire_current_location(StaticPositionProvider(NEW_YORK)) == NEW_YORK


def test_acquire_without_provider_is_unsupported():
    with pytest.raises(LocationUnsupported) as excinfo:
        acquire_current_location(None)
    assert str(excinfo.value) == "Geolocation is not supported by this platform"


@pytest.mark.parametrize(
    ("code", "error_type", "message"),
    [
        (PositionErrorCode.PERMISSION_DENIED, LocationPermissionDenied, "Location access denied by user"),
        (PositionErrorCode.POSITION_UNAVAILABLE, LocationUnavailable, "Location information unavailable"),
        (PositionErrorCode.TIMEOUT, LocationTimeout, "Location request timed out"),
    ],
)
def test_provider_failures_map_to_distinct_errors(code, error_type, message):
    with pytest.raises(error_type) as excinfo:
        acquire_current_location(StaticPositionProvider(error_code=code))
    assert str(excinfo.value) == message


def test_silent_provider_times_out():
    provider = SilentProvider()
    with pytest.raises(LocationTimeout):
        acquire_current_location(provider, PositionOptions(timeout=0.1))
    assert provider.calls == 1


def test_late_callbacks_after_timeout_are_ignored():
    provider = LateProvider()
    with pytest.raises(LocationTimeout):
        acquire_current_location(provider, PositionOptions(timeout=0.1))
    provider.release.set()
    assert provider.finished.wait(5)


def test_threaded_callback_resolves():
    provider = LateProvider()
    provider.release.set()
    assert acquire_current_location(provider, PositionOptions(timeout=5)) == NEW_YORK


def test_cancel_stops_waiting():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(LocationCancelled):
        acquire_current_location(SilentProvider(), PositionOptions(timeout=5), cancel=cancel)


def test_cache_reuses_recent_fix_and_expires():
    clock = FakeClock()
    cache = PositionCache(clock=clock)
    provider = StaticPositionProvider(NEW_YORK)
    options = PositionOptions(maximum_age=300)

    acquire_current_location(provider, options, cache=cache)
    clock.now += 299
    acquire_current_location(provider, options, cache=cache)
    assert provider.calls == 1

    clock.now += 2
    acquire_current_location(provider, options, cache=cache)
    assert provider.calls == 2


def test_zero_maximum_age_skips_cache():
    cache = PositionCache()
    provider = StaticPositionProvider(NEW_YORK)
    options = PositionOptions(maximum_age=0)

    acquire_current_location(provider, options, cache=cache)
    acquire_current_location(provider, options, cache=cache)

    assert provider.calls == 2


def test_locate_returns_tagged_results():
    ok = locate(StaticPositionProvider(NEW_YORK))
    assert isinstance(ok, Success)
    assert ok.value == NEW_YORK

    denied = locate(StaticPositionProvider(error_code=PositionErrorCode.PERMISSION_DENIED))
    assert isinstance(denied, Failure)
    assert denied.kind is ErrorKind.PERMISSION_DENIED
    assert denied.ok is False

    unsupported = Geolocator(None).locate()
    assert unsupported.kind is ErrorKind.UNSUPPORTED


class FakeHttp:
    def __init__(self, payload=None, exc=None):
        self.payload = payload
        self.exc = exc
        self.calls = []

    def get_json(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.payload


def test_ip_provider_resolves_ipapi_payload():
    http = FakeHttp({"ip": "203.0.113.9", "latitude": 42.36, "longitude": -71.05})
    provider = IpPositionProvider(http, "https://ipapi.test/json/")

    point = acquire_current_location(provider, PositionOptions(timeout=5))

    assert point == GeoPoint(42.36, -71.05)
    assert http.calls[0][1]["source_type"] == "ipgeo"


def test_ip_provider_accepts_lat_lon_keys():
    provider = IpPositionProvider(FakeHttp({"status": "success", "lat": 1.5, "lon": 2.5}))
    assert acquire_current_location(provider, PositionOptions(timeout=5)) == GeoPoint(1.5, 2.5)


@pytest.mark.parametrize(
    "http",
    [
        FakeHttp({"error": True, "reason": "Reserved IP Address"}),
        FakeHttp(exc=HttpRequestError("HTTP status: 403", status_code=403)),
    ],
)
def test_ip_provider_failures_are_unavailable(http):
    with pytest.raises(LocationUnavailable):
        acquire_current_location(IpPositionProvider(http), PositionOptions(timeout=5))


def test_ip_provider_transport_error_is_unavailable_not_timeout(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    def broken(**_kwargs):
        raise requests.exceptions.ChunkedEncodingError("connection broken mid-body")

    monkeypatch.setattr(client.session, "request", broken)

    with pytest.raises(LocationUnavailable):
        acquire_current_location(IpPositionProvider(client), PositionOptions(timeout=5))


def test_ip_provider_permission_denied():
    provider = IpPositionProvider(FakeHttp({"latitude": 1, "longitude": 1}), permission_granted=False)
    with pytest.raises(LocationPermissionDenied):
        acquire_current_location(provider)


def test_build_provider_from_config():
    static = build_provider({"provider": "static", "static": {"latitude": 1, "longitude": 2}})
    assert isinstance(static, StaticPositionProvider)
    assert static.point == GeoPoint(1, 2)

    assert build_provider({"provider": "none"}) is None
    assert isinstance(build_provider({"provider": "ip"}, FakeHttp()), IpPositionProvider)
    with pytest.raises(ValueError):
        build_provider({"provider": "ip"})
