"""Probe-related data models."""

from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, Field

from gfc.core.constants import DelayConstants, ProbeConstants
from gfc.models.record import CacheRecord


class ProbeErrorKind(StrEnum):
    """Classification of a failed probe."""

    NOT_FOUND = "not_found"
    RETRYABLE = "retryable"
    CIRCUIT_OPEN = "circuit_open"
    INVALID_RESPONSE = "invalid_response"
    FATAL = "fatal"


class ProbeResult(BaseModel):
    """Outcome of a single probe attempt."""

    id: int
    found: bool
    record: CacheRecord | None = None
    error: str | None = None
    error_kind: ProbeErrorKind | None = None
    status_code: int | None = None

    @property
    def is_not_found(self) -> bool:
        """Check if the form definitely does not exist."""
        return self.error_kind == ProbeErrorKind.NOT_FOUND


class ProbeStats(BaseModel):
    """Running statistics for a batch or sync."""

    attempted: int = 0
    found: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)

    def record(self, result: ProbeResult) -> None:
        """Account for one probe result."""
        self.attempted += 1
        if result.found:
            self.found += 1
            return

        self.failed += 1
        if result.error and len(self.errors) < ProbeConstants.MAX_RECORDED_ERRORS:
            self.errors.append(result.error)


class ProbeProgress(BaseModel):
    """Progress snapshot reported after each probe."""

    phase: str
    current_id: int
    found_so_far: int = 0
    total: int | None = None


class BeyondMaxOptions(BaseModel):
    """Options bounding a beyond-max scan."""

    consecutive_failure_threshold: int = Field(default=ProbeConstants.CONSECUTIVE_FAILURE_THRESHOLD, gt=0)
    max_probe_limit: int = Field(default=ProbeConstants.MAX_PROBE_LIMIT, gt=0)
    probe_delay_seconds: float = Field(default=DelayConstants.PROBE_DELAY, ge=0)
    on_progress: Callable[[ProbeProgress], None] | None = None
    should_cancel: Callable[[], bool] | None = None
