"""Application constants."""

USER_AGENT = "listing-geo/0.3 (+rental listings; contact: configured-email)"
EARTH_RADIUS_KM = 6371.0
COMMANDS = (
    "backfill",
    "clear",
    "audit",
    "backfill-views",
    "rank",
    "locate",
    "self-check",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "job",
    "listing_id",
    "event",
    "status",
    "duration_ms",
    "updated",
    "skipped",
    "failed",
    "total",
    "error_code",
    "message",
)
