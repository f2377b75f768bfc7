"""Circuit breaker guarding calls to the remote forms service."""

import logging
import threading
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any, TypeVar

from gfc.core.constants import DelayConstants, ProbeConstants
from gfc.exceptions import CircuitOpenError, InvalidArgumentError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(StrEnum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """
    Stop calling a failing service after repeated consecutive failures.

    States:
        CLOSED    -> Normal operation, calls go through.
        OPEN      -> Failures reached the threshold, calls are rejected until
                     ``reset_timeout`` seconds have passed.
        HALF_OPEN -> Cooldown expired, exactly one trial call is in flight.
                     Success closes the circuit, failure reopens it.
    """

    def __init__(
        self,
        failure_threshold: int = ProbeConstants.CIRCUIT_BREAKER_THRESHOLD,
        reset_timeout: float = DelayConstants.CIRCUIT_RESET_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold <= 0:
            raise InvalidArgumentError("failure_threshold", failure_threshold, "Failure threshold must be positive")
        if reset_timeout < 0:
            raise InvalidArgumentError("reset_timeout", reset_timeout, "Reset timeout must not be negative")

        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._next_attempt_time = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    @property
    def consecutive_failures(self) -> int:
        """Failures recorded since the last success."""
        return self._failures

    def allow_request(self) -> bool:
        """Check whether a call may proceed, moving OPEN to HALF_OPEN once the cooldown expires."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._clock() < self._next_attempt_time:
                    return False
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = True
                logger.info("Circuit half-open, allowing trial request")
                return True

            # HALF_OPEN: only one trial at a time
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        """Record a successful call. Resets failures and closes the circuit."""
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("Circuit closed (service recovered)")
            self._failures = 0
            self._state = CircuitState.CLOSED
            self._trial_in_flight = False

    def record_failure(self) -> None:
        """Record a failed call. Opens the circuit at the threshold or after a failed trial."""
        with self._lock:
            self._failures += 1
            failed_trial = self._state == CircuitState.HALF_OPEN
            self._trial_in_flight = False

            if failed_trial or self._failures >= self.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(
                        f"Circuit opened after {self._failures} consecutive failures "
                        f"(cooldown: {self.reset_timeout:.0f}s)"
                    )
                self._state = CircuitState.OPEN
                self._next_attempt_time = self._clock() + self.reset_timeout

    def reset(self) -> None:
        """Return to a fresh CLOSED state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._next_attempt_time = 0.0
            self._trial_in_flight = False

    def execute(self, operation: Callable[..., T], *args: Any, name: str | None = None, **kwargs: Any) -> T:
        """Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit rejects the call; ``operation`` is not invoked
        """
        operation_name = name or getattr(operation, "__name__", "operation")
        if not self.allow_request():
            raise CircuitOpenError(
                operation_name,
                f"Circuit breaker is {self._state} for {operation_name} - too many consecutive failures",
            )

        try:
            result = operation(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result
