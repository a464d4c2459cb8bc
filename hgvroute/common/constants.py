"""Application constants."""

USER_AGENT = "hgv-batch-router/1.0 (+batch routing; contact: configured-email)"

STATUS_PENDING = "pending"
STATUS_GEOCODING = "geocoding"
STATUS_ROUTING = "routing"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_INVALID_LOCATION = "invalid_location"

TERMINAL_STATUSES = frozenset({STATUS_SUCCESS, STATUS_ERROR, STATUS_INVALID_LOCATION})
IN_FLIGHT_STATUSES = frozenset({STATUS_GEOCODING, STATUS_ROUTING})

MESSAGE_EMPTY_DESTINATION = "empty destination"
MESSAGE_NOT_FOUND = "not found"
MESSAGE_OUTSIDE_FRANCE = "outside France"
MESSAGE_MISSING_COORDINATES = "missing coordinates"
MESSAGE_ROUTE_IMPOSSIBLE = "route impossible"
MESSAGE_STILL_THROTTLED = "still throttled"

# Keyed by FatalProviderError.error_code.
FATAL_ERROR_MESSAGES = {
    "ACCESS_DISALLOWED": "Service not authorised (403)",
    "AUTH_FAILED": "Invalid API key (401)",
    "API_KEY_MISSING": "API key missing",
}

COMMANDS = ("route", "validate-config")
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "record_index",
    "record_id",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
