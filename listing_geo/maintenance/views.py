"""Backfill of the ``views`` counter on listings created before it existed."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from listing_geo.common.models import Listing
from listing_geo.common.result import Result
from listing_geo.maintenance.batch import Throttle, fetch_listings, run_job, write_each
from listing_geo.store.documents import DocumentStore


@dataclass(frozen=True)
class ViewsBackfillReport:
    updated: int
    skipped: int
    failed: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def backfill_views(
    store: DocumentStore,
    collection_id: str,
    *,
    throttle: Throttle,
    logger: logging.Logger,
    run_id: str | None = None,
) -> Result[ViewsBackfillReport]:
    def _update(listing: Listing) -> dict[str, Any] | None:
        if listing.fields.get("views") is not None:
            return None
        return {"views": 0}

    def _body() -> ViewsBackfillReport:
        listings = fetch_listings(store, collection_id)
        updated, skipped, failed = write_each(
            store,
            collection_id,
            listings,
            job="backfill-views",
            build_update=_update,
            throttle=throttle,
            logger=logger,
            run_id=run_id,
        )
        return ViewsBackfillReport(updated=updated, skipped=skipped, failed=failed, total=len(listings))

    return run_job("backfill-views", _body, logger=logger, run_id=run_id)
