"""
Constants and configuration values for the Gravity Forms cache.
"""

from enum import IntEnum, StrEnum

# Gravity Forms REST API v2 path, appended to the site URL
API_PATH = "/wp-json/gf/v2"

PACKAGE_VERSION = "0.1.0"

# Highest schema version this code knows how to build
CURRENT_SCHEMA_VERSION = 2

DEFAULT_DB_PATH = "./data/forms-cache.db"


class APIConstants(IntEnum):
    """API-related limits and constants."""

    REQUEST_TIMEOUT = 30
    BACKOFF_MAX_TRIES = 3
    BACKOFF_FACTOR = 2
    BACKOFF_MAX_VALUE = 30


class ProbeConstants(IntEnum):
    """Probing limits and defaults."""

    DEFAULT_START_ID = 1
    CIRCUIT_BREAKER_THRESHOLD = 5
    CONSECUTIVE_FAILURE_THRESHOLD = 10
    MAX_PROBE_LIMIT = 1000
    MAX_RETRIES_CEILING = 5
    DEFAULT_MAX_RETRIES = 3
    MAX_RECORDED_ERRORS = 100
    HIGHEST_ID_SCAN_CEILING = 10000
    HIGHEST_ID_MISS_LIMIT = 10


class DelayConstants:
    """Delays in seconds between remote calls."""

    PROBE_DELAY = 0.1
    HIGHEST_ID_SCAN_DELAY = 0.05
    BACKOFF_BASE_DELAY = 0.1
    BACKOFF_MAX_DELAY = 5.0
    BACKOFF_MAX_JITTER = 0.05
    CIRCUIT_RESET_TIMEOUT = 60.0


class CacheLimits(IntEnum):
    """Cache-related limits."""

    DEFAULT_MAX_AGE_SECONDS = 3600
    MIN_MAX_AGE_SECONDS = 60
    MAX_MAX_AGE_SECONDS = 86400
    FULL_SYNC_INTERVAL_HOURS = 24


class MetadataKeys(StrEnum):
    """Keys used in the sync_metadata table."""

    LAST_FULL_SYNC = "last_full_sync"
    LAST_SYNC = "last_sync"


class SyncPhase(StrEnum):
    """Phases reported through progress callbacks."""

    FETCH_ACTIVE = "fetch-active"
    PROBE_GAPS = "probe-gaps"
    PROBE_BEYOND_MAX = "probe-beyond-max"
    FOUND_FORM = "found-form"
    COMPLETION = "completion"
    COMPLETED = "completed"


class FormattingConstants(IntEnum):
    """Formatting constants."""

    JSON_INDENT = 2


class TableColumnWidths(IntEnum):
    """Table column width constants for CLI display."""

    ID = 8
    TITLE = 40
    ENTRIES = 8
    STATUS = 10
    SYNCED = 20


class ProgressBarConstants(IntEnum):
    """Progress bar update intervals."""

    MIN_UPDATE_INTERVAL = 100  # milliseconds
    MAX_UPDATE_INTERVAL = 300  # milliseconds
