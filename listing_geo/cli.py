"""CLI entrypoint for listing geolocation maintenance and ranking."""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any

from listing_geo.common.config_loader import DEFAULT_CONFIG_PATH, AppConfig, load_config
from listing_geo.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from listing_geo.common.errors import ListingGeoError
from listing_geo.common.fs import write_json
from listing_geo.common.http import HttpClient
from listing_geo.common.logging import build_logger, close_logger, log_event
from listing_geo.common.models import GeoPoint, Listing
from listing_geo.common.result import Failure, Success
from listing_geo.common.throttle import NoThrottle, WriteThrottle
from listing_geo.common.time_utils import generate_run_id
from listing_geo.diagnostics.self_check import run_self_check
from listing_geo.geo.distance import metric_by_name
from listing_geo.geo.geocoding import GeocodingClient, locate_with_place
from listing_geo.geo.location import Geolocator, PositionOptions, build_provider
from listing_geo.geo.ranking import nearest, rank_by_distance
from listing_geo.maintenance.batch import fetch_listings
from listing_geo.maintenance.coordinates import (
    audit_coordinates,
    backfill_coordinates,
    clear_coordinates,
    sample_cities_from_config,
)
from listing_geo.maintenance.views import backfill_views
from listing_geo.store.appwrite import AppwriteDocumentStore
from listing_geo.store.documents import InMemoryDocumentStore

WRITE_COMMANDS = {"backfill", "clear", "backfill-views"}


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    parser.add_argument("--overlay-config", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--snapshot", default=None, help="JSON snapshot used instead of Appwrite")
    parser.add_argument("--collection", default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lon", type=float, default=None)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--max-distance-km", type=float, default=None)
    parser.add_argument("--with-place", action="store_true")
    parser.add_argument("--no-geolocation", action="store_true")
    args = parser.parse_args(argv)
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    if args.lat is not None and not (-90.0 <= args.lat <= 90.0 and -180.0 <= args.lon <= 180.0):
        parser.error(f"origin out of range: {args.lat}, {args.lon}")
    return args


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, sort_keys=True))


def _result_exit_code(result) -> int:
    if isinstance(result, Failure):
        return EXIT_HARD_FAIL
    if getattr(result.value, "failed", 0):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def _result_payload(command: str, result) -> dict[str, Any]:
    if isinstance(result, Success):
        return {"command": command, "success": True, **result.value.to_dict()}
    return {"command": command, "success": False, "error_kind": result.kind.value, "error": result.message}


def _build_store(args: argparse.Namespace, config: AppConfig, http_client: HttpClient):
    page_size = int(config.appwrite["page_size"])
    if args.snapshot:
        return InMemoryDocumentStore.from_snapshot(Path(args.snapshot), page_size=page_size)
    return AppwriteDocumentStore.from_config(http_client, config.appwrite)


def _build_geolocator(config: AppConfig, http_client: HttpClient) -> Geolocator:
    provider = build_provider(config.location, http_client)
    return Geolocator(provider, PositionOptions.from_config(config.location))


def _resolve_origin(args: argparse.Namespace, config: AppConfig, http_client: HttpClient) -> GeoPoint:
    if args.lat is not None and args.lon is not None:
        return GeoPoint(args.lat, args.lon)
    return _build_geolocator(config, http_client).acquire()


def _run_rank(args, config, http_client, store, collection_id, data_dir, logger, run_id) -> int:
    try:
        origin = _resolve_origin(args, config, http_client)
        listings: list[Listing] = fetch_listings(store, collection_id)
    except ListingGeoError as exc:
        log_event(
            logger,
            f"rank aborted: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            job="rank",
            event="JOB_ABORT",
            status="error",
            error_code=exc.error_code,
        )
        _emit({"command": "rank", "success": False, "error_kind": exc.kind.value, "error": str(exc)})
        return EXIT_HARD_FAIL

    metric = metric_by_name(config.ranking["metric"])
    if args.limit is not None or args.max_distance_km is not None:
        ranked = nearest(listings, origin, limit=args.limit, max_distance_km=args.max_distance_km, metric=metric)
    else:
        ranked = rank_by_distance(listings, origin, metric=metric)

    payload = {
        "command": "rank",
        "success": True,
        "origin": origin.to_dict(),
        "metric": config.ranking["metric"],
        "listings": [item.to_dict() for item in ranked],
    }
    write_json(data_dir / "out" / f"{run_id}_rank.json", payload)
    log_event(logger, "rank complete", run_id=run_id, job="rank", event="JOB_END", status="ok", total=len(listings))
    _emit(payload)
    return EXIT_SUCCESS


def _run_locate(args, config, http_client, logger, run_id) -> int:
    geolocator = _build_geolocator(config, http_client)
    if args.with_place:
        geocoder = GeocodingClient.from_config(http_client, config.geocoding)
        result = locate_with_place(geolocator, geocoder)
    else:
        result = geolocator.locate()

    if isinstance(result, Failure):
        log_event(
            logger,
            f"locate failed: {result.message}",
            level=logging.ERROR,
            run_id=run_id,
            job="locate",
            event="JOB_ABORT",
            status="error",
            error_code=result.kind.value,
        )
        _emit({"command": "locate", "success": False, "error_kind": result.kind.value, "error": result.message})
        return EXIT_HARD_FAIL
    _emit({"command": "locate", "success": True, **result.value.to_dict()})
    return EXIT_SUCCESS


def execute_command(
    args: argparse.Namespace,
    config: AppConfig,
    http_client: HttpClient,
    data_dir: Path,
    logger: logging.Logger,
    run_id: str,
) -> int:
    command = args.command
    if command == "locate":
        return _run_locate(args, config, http_client, logger, run_id)
    if command == "self-check":
        geolocator = None if args.no_geolocation else _build_geolocator(config, http_client)
        report = run_self_check(geolocator, logger, run_id=run_id)
        _emit({"command": command, **report.to_dict()})
        return EXIT_SUCCESS if report.passed else EXIT_PARTIAL

    store = _build_store(args, config, http_client)
    collection_id = args.collection or config.appwrite["properties_collection_id"]
    throttle = NoThrottle() if args.snapshot else WriteThrottle(float(config.throttle["write_interval_seconds"]))

    if command == "rank":
        return _run_rank(args, config, http_client, store, collection_id, data_dir, logger, run_id)

    if command == "backfill":
        result = backfill_coordinates(
            store,
            collection_id,
            throttle=throttle,
            logger=logger,
            cities=sample_cities_from_config(config.sample_cities),
            rng=random.Random(args.seed),
            run_id=run_id,
        )
    elif command == "clear":
        result = clear_coordinates(store, collection_id, throttle=throttle, logger=logger, run_id=run_id)
    elif command == "audit":
        result = audit_coordinates(store, collection_id, logger=logger, run_id=run_id)
    elif command == "backfill-views":
        result = backfill_views(store, collection_id, throttle=throttle, logger=logger, run_id=run_id)
    else:
        raise ValueError(f"Unknown command: {command}")

    payload = _result_payload(command, result)
    if command == "audit" and isinstance(result, Success):
        write_json(data_dir / "out" / f"{run_id}_audit.json", payload)
    if command in WRITE_COMMANDS and args.snapshot:
        store.save_snapshot(Path(args.snapshot))
    _emit(payload)
    return _result_exit_code(result)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        config = load_config(
            Path(args.config),
            overlay_path=Path(args.overlay_config) if args.overlay_config else None,
        )
        with HttpClient() as http_client:
            return execute_command(args, config, http_client, data_dir, logger, run_id)
    except ListingGeoError as exc:
        log_event(
            logger,
            f"{args.command} failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            job=args.command,
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    finally:
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except ListingGeoError:
        return EXIT_HARD_FAIL
    except Exception:
        logging.getLogger("listing_geo").exception("unexpected failure")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
