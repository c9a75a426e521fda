"""Current-location acquisition over callback-style position providers.

Providers follow the browser geolocation contract: ``get_current_position``
receives a success callback, a failure callback and the request options, and
invokes exactly one of the callbacks, possibly later and from another thread.
``acquire_current_location`` turns that into a blocking call bounded by the
request timeout, with reuse of a recent cached fix.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Protocol

from listing_geo.common.errors import (
    LocationCancelled,
    LocationError,
    LocationPermissionDenied,
    LocationTimeout,
    LocationUnavailable,
    LocationUnsupported,
)
from listing_geo.common.http import HttpClient, HttpRequestError, TimeoutConfig
from listing_geo.common.models import GeoPoint
from listing_geo.common.result import Failure, Result, Success

_POLL_SECONDS = 0.05


class PositionErrorCode(IntEnum):
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout: float = 10.0
    maximum_age: float = 300.0

    @classmethod
    def from_config(cls, location_cfg: dict) -> "PositionOptions":
        return cls(
            enable_high_accuracy=bool(location_cfg.get("enable_high_accuracy", True)),
            timeout=float(location_cfg.get("timeout_seconds", 10)),
            maximum_age=float(location_cfg.get("maximum_age_seconds", 300)),
        )


@dataclass(frozen=True)
class Position:
    coords: GeoPoint
    accuracy_m: float | None = None
    timestamp: float | None = None


@dataclass(frozen=True)
class PositionError:
    code: PositionErrorCode
    message: str = ""


SuccessCallback = Callable[[Position], None]
FailureCallback = Callable[[PositionError], None]


class PositionProvider(Protocol):
    def get_current_position(
        self,
        success: SuccessCallback,
        failure: FailureCallback,
        options: PositionOptions,
    ) -> None: ...


_ERRORS_BY_CODE: dict[PositionErrorCode, type[LocationError]] = {
    PositionErrorCode.PERMISSION_DENIED: LocationPermissionDenied,
    PositionErrorCode.POSITION_UNAVAILABLE: LocationUnavailable,
    PositionErrorCode.TIMEOUT: LocationTimeout,
}


class PositionCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._point: GeoPoint | None = None
        self._stored_at: float | None = None
        self._lock = threading.Lock()

    def get(self, maximum_age: float) -> GeoPoint | None:
        with self._lock:
            if self._point is None or self._stored_at is None:
                return None
            if self.clock() - self._stored_at > maximum_age:
                return None
            return self._point

    def put(self, point: GeoPoint) -> None:
        with self._lock:
            self._point = point
            self._stored_at = self.clock()

    def clear(self) -> None:
        with self._lock:
            self._point = None
            self._stored_at = None


def acquire_current_location(
    provider: PositionProvider | None,
    options: PositionOptions | None = None,
    *,
    cache: PositionCache | None = None,
    cancel: threading.Event | None = None,
) -> GeoPoint:
    options = options or PositionOptions()
    if provider is None:
        raise LocationUnsupported()

    if cache is not None and options.maximum_age > 0:
        cached = cache.get(options.maximum_age)
        if cached is not None:
            return cached

    done = threading.Event()
    lock = threading.Lock()
    outcome: dict[str, Any] = {}

    def _settle(key: str, value: Any) -> None:
        # First callback wins; late callbacks after a timeout are dropped.
        with lock:
            if done.is_set():
                return
            outcome[key] = value
            done.set()

    provider.get_current_position(
        lambda position: _settle("position", position),
        lambda error: _settle("error", error),
        options,
    )

    deadline = time.monotonic() + options.timeout
    while not done.is_set():
        if cancel is not None and cancel.is_set():
            _settle("cancelled", True)
            break
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            _settle("error", PositionError(PositionErrorCode.TIMEOUT))
            break
        done.wait(min(remaining, _POLL_SECONDS))

    if "cancelled" in outcome:
        raise LocationCancelled()
    if "error" in outcome:
        error: PositionError = outcome["error"]
        raise _ERRORS_BY_CODE.get(error.code, LocationUnavailable)()

    point = outcome["position"].coords
    if cache is not None:
        cache.put(point)
    return point


class Geolocator:
    """A provider plus the fix cache shared by its requests."""

    def __init__(
        self,
        provider: PositionProvider | None,
        options: PositionOptions | None = None,
        cache: PositionCache | None = None,
    ) -> None:
        self.provider = provider
        self.options = options or PositionOptions()
        self.cache = cache or PositionCache()

    def acquire(self, cancel: threading.Event | None = None) -> GeoPoint:
        return acquire_current_location(self.provider, self.options, cache=self.cache, cancel=cancel)

    def locate(self, cancel: threading.Event | None = None) -> Result[GeoPoint]:
        try:
            return Success(self.acquire(cancel=cancel))
        except LocationError as exc:
            return Failure.from_error(exc)


def locate(
    provider: PositionProvider | None,
    options: PositionOptions | None = None,
    *,
    cache: PositionCache | None = None,
    cancel: threading.Event | None = None,
) -> Result[GeoPoint]:
    try:
        return Success(acquire_current_location(provider, options, cache=cache, cancel=cancel))
    except LocationError as exc:
        return Failure.from_error(exc)


class StaticPositionProvider:
    """Answers every request with a fixed point or a fixed failure."""

    def __init__(self, point: GeoPoint | None = None, error_code: PositionErrorCode | None = None) -> None:
        if point is None and error_code is None:
            raise ValueError("StaticPositionProvider needs a point or an error_code")
        self.point = point
        self.error_code = error_code
        self.calls = 0

    def get_current_position(
        self,
        success: SuccessCallback,
        failure: FailureCallback,
        options: PositionOptions,
    ) -> None:
        self.calls += 1
        if self.error_code is not None:
            failure(PositionError(self.error_code))
            return
        success(Position(coords=self.point, timestamp=time.time()))


def _payload_point(payload: Any) -> GeoPoint | None:
    if not isinstance(payload, dict) or payload.get("error"):
        return None
    lat = payload.get("latitude", payload.get("lat"))
    lon = payload.get("longitude", payload.get("lon"))
    if lat is None or lon is None:
        return None
    try:
        return GeoPoint(float(lat), float(lon))
    except (TypeError, ValueError):
        return None


class IpPositionProvider:
    """Approximate fix from an IP geolocation endpoint, resolved in a worker thread."""

    def __init__(
        self,
        http_client: HttpClient,
        endpoint: str = "https://ipapi.co/json/",
        *,
        permission_granted: bool = True,
    ) -> None:
        self.http_client = http_client
        self.endpoint = endpoint
        self.permission_granted = permission_granted

    def _resolve(self, success: SuccessCallback, failure: FailureCallback, options: PositionOptions) -> None:
        try:
            payload = self.http_client.get_json(
                self.endpoint,
                source_type="ipgeo",
                timeout=TimeoutConfig(connect=options.timeout, read=options.timeout),
            )
        except HttpRequestError as exc:
            failure(PositionError(PositionErrorCode.POSITION_UNAVAILABLE, str(exc)))
            return
        point = _payload_point(payload)
        if point is None:
            failure(PositionError(PositionErrorCode.POSITION_UNAVAILABLE, "no coordinates in response"))
            return
        accuracy = payload.get("accuracy") if isinstance(payload, dict) else None
        success(Position(coords=point, accuracy_m=accuracy, timestamp=time.time()))

    def get_current_position(
        self,
        success: SuccessCallback,
        failure: FailureCallback,
        options: PositionOptions,
    ) -> None:
        if not self.permission_granted:
            failure(PositionError(PositionErrorCode.PERMISSION_DENIED))
            return
        worker = threading.Thread(
            target=self._resolve,
            args=(success, failure, options),
            name="ip-position",
            daemon=True,
        )
        worker.start()


def build_provider(location_cfg: dict, http_client: HttpClient | None = None) -> PositionProvider | None:
    kind = location_cfg.get("provider", "none")
    if kind == "static":
        static = location_cfg["static"]
        return StaticPositionProvider(GeoPoint(float(static["latitude"]), float(static["longitude"])))
    if kind == "ip":
        if http_client is None:
            raise ValueError("ip provider needs an http client")
        return IpPositionProvider(
            http_client,
            location_cfg.get("ip_endpoint", "https://ipapi.co/json/"),
            permission_granted=bool(location_cfg.get("permission_granted", True)),
        )
    return None
