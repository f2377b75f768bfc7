"""Sync options, results and cache status models."""

from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel, Field

from gfc.core.constants import CacheLimits, DelayConstants, ProbeConstants
from gfc.models.probe import ProbeProgress
from gfc.models.record import utc_now


class SyncOptions(BaseModel):
    """Options controlling a single sync run."""

    force_full_sync: bool = False
    max_age_seconds: float = Field(default=CacheLimits.DEFAULT_MAX_AGE_SECONDS, ge=0)
    start_id: int = Field(default=ProbeConstants.DEFAULT_START_ID, gt=0)
    circuit_breaker_threshold: int = Field(default=ProbeConstants.CIRCUIT_BREAKER_THRESHOLD, gt=0)
    consecutive_failure_threshold: int = Field(default=ProbeConstants.CONSECUTIVE_FAILURE_THRESHOLD, gt=0)
    max_probe_limit: int = Field(default=ProbeConstants.MAX_PROBE_LIMIT, gt=0)
    probe_delay_seconds: float = Field(default=DelayConstants.PROBE_DELAY, ge=0)
    on_progress: Callable[[ProbeProgress], None] | None = None
    should_cancel: Callable[[], bool] | None = None


class SyncResult(BaseModel):
    """Summary returned by every sync run."""

    discovered: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    duration: float = 0.0  # milliseconds
    last_sync_time: datetime = Field(default_factory=utc_now)
    full_sync: bool = False
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        """Check if the run finished with partial failures."""
        return len(self.errors) > 0


class CacheStats(BaseModel):
    """Health view of the local cache."""

    total_forms: int = 0
    active_count: int = 0
    inactive_count: int = 0
    trash_count: int = 0
    last_sync: datetime | None = None
    last_full_sync: datetime | None = None
    schema_version: int = 0
