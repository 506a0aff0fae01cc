"""Application constants."""

USER_AGENT = "dispmap/0.3 (+dispensary map data; contact: configured-email)"
DELIVERY_ONLY_MARKER = "***"
MISSING_CELL = "-"
TABLE_COLUMNS = ("name", "address", "city", "zip_code", "website")
COMMANDS = (
    "run",
    "list",
    "export-cache",
    "reset",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "region",
    "record",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
