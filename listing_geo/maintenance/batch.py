"""Sequential, throttled batch machinery shared by maintenance jobs."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

from listing_geo.common.errors import RemoteFetchError, StoreError
from listing_geo.common.logging import log_event
from listing_geo.common.models import Listing
from listing_geo.common.result import Failure, Result, Success
from listing_geo.store.documents import DocumentStore

UpdateBuilder = Callable[[Listing], "dict[str, Any] | None"]


class Throttle(Protocol):
    def acquire(self, tokens: float = 1.0) -> None: ...


def fetch_listings(store: DocumentStore, collection_id: str) -> list[Listing]:
    documents = store.list_documents(collection_id)
    try:
        return [Listing.from_document(doc) for doc in documents]
    except ValueError as exc:
        raise RemoteFetchError(f"Malformed document in {collection_id}: {exc}") from exc


def write_each(
    store: DocumentStore,
    collection_id: str,
    listings: list[Listing],
    *,
    job: str,
    build_update: UpdateBuilder,
    throttle: Throttle,
    logger: logging.Logger,
    run_id: str | None = None,
) -> tuple[int, int, int]:
    """Apply ``build_update`` to each listing; ``None`` means skip.

    Returns ``(updated, skipped, failed)``.
    """
    updated = skipped = failed = 0
    for listing in listings:
        label = listing.title or listing.id
        data = build_update(listing)
        if data is None:
            skipped += 1
            log_event(
                logger,
                f"skipping {label}",
                level=logging.DEBUG,
                run_id=run_id,
                job=job,
                listing_id=listing.id,
                event="LISTING_SKIP",
                status="ok",
            )
            continue

        throttle.acquire()
        try:
            store.update_document(collection_id, listing.id, data)
        except StoreError as exc:
            failed += 1
            log_event(
                logger,
                f"failed to update {label}: {exc}",
                level=logging.ERROR,
                run_id=run_id,
                job=job,
                listing_id=listing.id,
                event="LISTING_WRITE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            continue

        updated += 1
        log_event(
            logger,
            f"updated {label}",
            run_id=run_id,
            job=job,
            listing_id=listing.id,
            event="LISTING_UPDATE",
            status="ok",
        )
    return updated, skipped, failed


def run_job(
    job: str,
    body: Callable[[], Any],
    *,
    logger: logging.Logger,
    run_id: str | None = None,
) -> Result:
    started = time.monotonic()
    log_event(logger, f"{job} start", run_id=run_id, job=job, event="JOB_START", status="ok")
    try:
        report = body()
    except StoreError as exc:
        log_event(
            logger,
            f"{job} aborted: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            job=job,
            event="JOB_ABORT",
            status="error",
            error_code=exc.error_code,
        )
        return Failure.from_error(exc)

    counts = {key: value for key, value in report.to_dict().items() if isinstance(value, int)}
    log_event(
        logger,
        f"{job} complete",
        run_id=run_id,
        job=job,
        event="JOB_END",
        status="partial" if counts.get("failed") else "ok",
        duration_ms=int((time.monotonic() - started) * 1000),
        **counts,
    )
    return Success(report)
