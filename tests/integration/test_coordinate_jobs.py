from __future__ import annotations

import logging
import random

import pytest
import requests

from listing_geo.common.errors import RemoteFetchError, RemoteWriteError
from listing_geo.common.http import HttpClient, RetryConfig
from listing_geo.common.result import ErrorKind, Failure, Success
from listing_geo.common.throttle import NoThrottle
from listing_geo.maintenance.coordinates import (
    DEFAULT_SAMPLE_CITIES,
    JITTER_DEGREES,
    audit_coordinates,
    backfill_coordinates,
    clear_coordinates,
    random_coordinates,
)
from listing_geo.maintenance.views import backfill_views
from listing_geo.store.appwrite import AppwriteDocumentStore
from listing_geo.store.documents import InMemoryDocumentStore

COLLECTION = "properties"


class CountingThrottle:
    def __init__(self):
        self.calls = 0

    def acquire(self, tokens: float = 1.0) -> None:
        self.calls += 1


class FlakyStore(InMemoryDocumentStore):
    def __init__(self, *args, failing_ids=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.failing_ids = set(failing_ids)

    def update_document(self, collection_id, document_id, data):
        if document_id in self.failing_ids:
            raise RemoteWriteError(f"rejected {document_id}")
        return super().update_document(collection_id, document_id, data)


class BrokenStore:
    def list_documents(self, collection_id):
        raise RemoteFetchError("HTTP status: 401")

    def update_document(self, collection_id, document_id, data):
        raise AssertionError("must not write")


@pytest.fixture
def logger():
    log = logging.getLogger("listing_geo.tests")
    log.setLevel(logging.DEBUG)
    return log


def _bare_store(n: int, page_size: int = 3) -> InMemoryDocumentStore:
    documents = [{"$id": f"p{i}", "title": f"Listing {i}"} for i in range(n)]
    return InMemoryDocumentStore({COLLECTION: documents}, page_size=page_size)


def test_random_coordinates_stay_within_jitter_of_a_city():
    rng = random.Random(7)
    for _ in range(50):
        city, point = random_coordinates(rng=rng)
        base = DEFAULT_SAMPLE_CITIES[city]
        assert abs(point.latitude - base.latitude) <= JITTER_DEGREES
        assert abs(point.longitude - base.longitude) <= JITTER_DEGREES


@pytest.mark.integration
def test_backfill_is_idempotent_across_pages(logger):
    store = _bare_store(7)
    throttle = CountingThrottle()

    first = backfill_coordinates(store, COLLECTION, throttle=throttle, logger=logger, rng=random.Random(1))
    second = backfill_coordinates(store, COLLECTION, throttle=throttle, logger=logger, rng=random.Random(2))

    assert isinstance(first, Success)
    assert (first.value.updated, first.value.skipped, first.value.total) == (7, 0, 7)
    assert (second.value.updated, second.value.skipped, second.value.total) == (0, 7, 7)
    assert throttle.calls == 7
    assert store.pages_read == 6


@pytest.mark.integration
def test_clear_after_backfill_then_audit(logger):
    store = _bare_store(5)
    backfill_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)

    cleared = clear_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)
    audit = audit_coordinates(store, COLLECTION, logger=logger)

    assert cleared.value.updated == 5
    assert audit.value.with_coords == 0
    assert audit.value.without_coords == 5
    assert all(not status.has_coords for status in audit.value.listings)


@pytest.mark.integration
def test_clear_handles_one_sided_coordinates(logger):
    store = InMemoryDocumentStore(
        {
            COLLECTION: [
                {"$id": "a", "title": "lat only", "latitude": 40.0, "longitude": None},
                {"$id": "b", "title": "bare"},
                {"$id": "c", "title": "both", "latitude": 0.0, "longitude": 0.0},
            ]
        }
    )

    cleared = clear_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)

    assert (cleared.value.updated, cleared.value.total) == (2, 3)
    assert store.collections[COLLECTION]["a"]["latitude"] is None
    assert store.collections[COLLECTION]["c"]["longitude"] is None


@pytest.mark.integration
def test_backfill_skips_complete_and_fills_one_sided(logger):
    store = InMemoryDocumentStore(
        {
            COLLECTION: [
                {"$id": "a", "latitude": 40.0, "longitude": -74.0},
                {"$id": "b", "latitude": 40.0},
            ]
        }
    )

    result = backfill_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)

    assert (result.value.updated, result.value.skipped) == (1, 1)
    assert store.collections[COLLECTION]["a"]["latitude"] == 40.0
    assert store.collections[COLLECTION]["b"]["longitude"] is not None


@pytest.mark.integration
def test_write_failures_are_logged_and_scan_continues(logger, caplog):
    store = FlakyStore({COLLECTION: [{"$id": f"p{i}"} for i in range(4)]}, failing_ids={"p1"})

    with caplog.at_level(logging.ERROR, logger="listing_geo.tests"):
        result = backfill_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)

    assert isinstance(result, Success)
    assert (result.value.updated, result.value.failed, result.value.total) == (3, 1, 4)
    failures = [r for r in caplog.records if getattr(r, "event", None) == "LISTING_WRITE_FAIL"]
    assert [r.listing_id for r in failures] == ["p1"]
    assert failures[0].error_code == "REMOTE_WRITE_FAILURE"


@pytest.mark.integration
@pytest.mark.parametrize("job", ["backfill", "clear", "audit", "views"])
def test_fetch_failure_aborts_job(logger, job):
    store = BrokenStore()
    if job == "backfill":
        result = backfill_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)
    elif job == "clear":
        result = clear_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger)
    elif job == "views":
        result = backfill_views(store, COLLECTION, throttle=NoThrottle(), logger=logger)
    else:
        result = audit_coordinates(store, COLLECTION, logger=logger)

    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.REMOTE_FETCH_FAILURE
    assert "401" in result.message


@pytest.mark.integration
def test_missing_collection_aborts(logger):
    result = audit_coordinates(_bare_store(1), "nope", logger=logger)
    assert isinstance(result, Failure)


@pytest.mark.integration
def test_backfill_views_only_touches_missing_counters(logger):
    store = InMemoryDocumentStore({COLLECTION: [{"$id": "a", "views": 12}, {"$id": "b"}, {"$id": "c", "views": 0}]})

    result = backfill_views(store, COLLECTION, throttle=NoThrottle(), logger=logger)

    assert (result.value.updated, result.value.skipped, result.value.total) == (1, 2, 3)
    assert store.collections[COLLECTION]["b"]["views"] == 0
    assert store.collections[COLLECTION]["a"]["views"] == 12


class FakeResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


@pytest.mark.integration
def test_transport_error_on_one_appwrite_write_does_not_stop_the_batch(monkeypatch, logger):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    patched = []

    def fake_request(method, url, **kwargs):
        if method == "GET":
            return FakeResponse(200, {"total": 2, "documents": [{"$id": "p0"}, {"$id": "p1"}]})
        if url.endswith("/p0"):
            raise requests.exceptions.ChunkedEncodingError("connection broken mid-body")
        patched.append(url.rsplit("/", 1)[-1])
        return FakeResponse(200, {"$id": "p1", **kwargs["json"]["data"]})

    monkeypatch.setattr(client.session, "request", fake_request)
    store = AppwriteDocumentStore(
        client,
        endpoint="https://appwrite.test/v1",
        project_id="proj",
        database_id="db",
        api_key="secret",
        page_size=10,
    )

    result = backfill_coordinates(store, COLLECTION, throttle=NoThrottle(), logger=logger, rng=random.Random(3))

    assert isinstance(result, Success)
    assert (result.value.updated, result.value.failed, result.value.total) == (1, 1, 2)
    assert patched == ["p1"]


@pytest.mark.integration
def test_transport_error_on_appwrite_fetch_is_a_failure_result(monkeypatch, logger):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    def fake_request(method, url, **kwargs):
        raise requests.exceptions.ContentDecodingError("bad gzip")

    monkeypatch.setattr(client.session, "request", fake_request)
    store = AppwriteDocumentStore(
        client,
        endpoint="https://appwrite.test/v1",
        project_id="proj",
        database_id="db",
        api_key="secret",
    )

    result = audit_coordinates(store, COLLECTION, logger=logger)

    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.REMOTE_FETCH_FAILURE
