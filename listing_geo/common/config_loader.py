"""Configuration loading, overlays and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from listing_geo.common.errors import ConfigError
from listing_geo.common.fs import read_yaml
from listing_geo.common.schema import validate_app_config

DEFAULT_CONFIG_PATH = Path("config") / "listing_geo.yml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "APPWRITE_ENDPOINT": ("appwrite", "endpoint"),
    "APPWRITE_PROJECT_ID": ("appwrite", "project_id"),
    "APPWRITE_DATABASE_ID": ("appwrite", "database_id"),
    "APPWRITE_PROPERTIES_COLLECTION_ID": ("appwrite", "properties_collection_id"),
    "APPWRITE_API_KEY": ("appwrite", "api_key"),
    "GEOCODING_API_KEY": ("geocoding", "api_key"),
}


@dataclass(frozen=True)
class AppConfig:
    appwrite: dict
    throttle: dict
    location: dict
    ranking: dict
    geocoding: dict
    sample_cities: dict[str, dict]


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if not isinstance(base, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must contain a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _apply_env_overrides(cfg: dict, environ: dict[str, str]) -> dict:
    out = dict(cfg)
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            out[section] = {**out.get(section, {}), key: value}
    return out


def load_config(
    config_path: Path = DEFAULT_CONFIG_PATH,
    *,
    overlay_path: Path | None = None,
    environ: dict[str, str] | None = None,
    allow_unknown: bool = False,
) -> AppConfig:
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)
    cfg = _load_yaml_with_overlay(config_path, overlay_path)
    cfg = _apply_env_overrides(cfg, environ)
    cfg = validate_app_config(cfg, allow_unknown=allow_unknown)
    return AppConfig(
        appwrite=cfg["appwrite"],
        throttle=cfg["throttle"],
        location=cfg["location"],
        ranking=cfg["ranking"],
        geocoding=cfg["geocoding"],
        sample_cities=cfg["sample_cities"],
    )
