"""Minimal strict schema for the YAML configuration."""

from __future__ import annotations

from listing_geo.common.errors import ConfigError

TOP_LEVEL_KEYS = {"appwrite", "throttle", "location", "ranking", "geocoding", "sample_cities"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive(value, ctx: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_app_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "config", allow_unknown)

    appwrite_keys = {"endpoint", "project_id", "database_id", "properties_collection_id", "page_size"}
    _assert_required_keys(cfg["appwrite"], appwrite_keys, "appwrite")
    _assert_no_unknown_keys(cfg["appwrite"], appwrite_keys | {"api_key"}, "appwrite", allow_unknown)
    page_size = cfg["appwrite"]["page_size"]
    if not isinstance(page_size, int) or not 1 <= page_size <= 5000:
        raise ConfigError("appwrite.page_size must be an integer between 1 and 5000")

    _assert_required_keys(cfg["throttle"], {"write_interval_seconds"}, "throttle")
    _assert_positive(cfg["throttle"]["write_interval_seconds"], "throttle.write_interval_seconds")

    location_keys = {"provider", "enable_high_accuracy", "timeout_seconds", "maximum_age_seconds"}
    _assert_required_keys(cfg["location"], location_keys, "location")
    _assert_no_unknown_keys(
        cfg["location"],
        location_keys | {"static", "ip_endpoint", "permission_granted"},
        "location",
        allow_unknown,
    )
    if cfg["location"]["provider"] not in {"static", "ip", "none"}:
        raise ConfigError("location.provider must be one of: static, ip, none")
    _assert_positive(cfg["location"]["timeout_seconds"], "location.timeout_seconds")
    if cfg["location"]["provider"] == "static":
        _assert_required_keys(cfg["location"].get("static") or {}, {"latitude", "longitude"}, "location.static")

    _assert_required_keys(cfg["ranking"], {"metric"}, "ranking")
    if cfg["ranking"]["metric"] not in {"haversine", "geodesic"}:
        raise ConfigError("ranking.metric must be one of: haversine, geodesic")

    _assert_required_keys(cfg["geocoding"], {"base_url"}, "geocoding")

    cities = cfg["sample_cities"]
    if not isinstance(cities, dict) or not cities:
        raise ConfigError("sample_cities must be a non-empty mapping")
    for name, coords in cities.items():
        _assert_required_keys(coords, {"latitude", "longitude"}, f"sample_cities.{name}")

    return cfg
