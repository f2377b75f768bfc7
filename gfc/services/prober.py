"""Per-ID probing of the forms service.

The listing endpoint only reports active forms, so inactive and trashed forms
are found by looking up individual IDs. All probing is sequential with a fixed
delay between calls.
"""

import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

import backoff

from gfc.cache.store import FormStore, validate_form_id
from gfc.core.constants import DelayConstants, ProbeConstants, SyncPhase
from gfc.core.retry import classify_error, exponential_delays, get_status_code, is_retryable
from gfc.core.validation import Invalid, to_cache_record, validate_form_payload
from gfc.exceptions import CacheError, DatabaseError, InvalidArgumentError
from gfc.models.probe import BeyondMaxOptions, ProbeErrorKind, ProbeProgress, ProbeResult, ProbeStats
from gfc.models.record import utc_now
from gfc.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

FetchById = Callable[[int], Any]
ProgressCallback = Callable[[ProbeProgress], None]

CIRCUIT_OPEN_MESSAGE = "Circuit breaker open - too many consecutive failures"


class Prober:
    """Looks up forms by ID and caches every form it finds.

    Args:
        store: Initialized form store receiving discovered forms
        breaker: Circuit breaker consulted by ``probe_batch``
        probe_delay: Seconds to wait between consecutive calls in a batch
        sleep: Sleep function used for every wait, replaceable in tests
        clock: Returns the current aware UTC time, used to stamp cached records
        base_delay: First retry delay in seconds
        max_delay: Upper bound for any retry delay in seconds
        max_jitter: Upper bound of the random addition to each retry delay
    """

    def __init__(
        self,
        store: FormStore,
        breaker: CircuitBreaker | None = None,
        probe_delay: float = DelayConstants.PROBE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        base_delay: float = DelayConstants.BACKOFF_BASE_DELAY,
        max_delay: float = DelayConstants.BACKOFF_MAX_DELAY,
        max_jitter: float = DelayConstants.BACKOFF_MAX_JITTER,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.breaker = breaker or CircuitBreaker()
        self.probe_delay = probe_delay
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_jitter = max_jitter
        self._sleep = sleep
        self.clock = clock
        self.stats = ProbeStats()

    def reset_stats(self) -> None:
        """Start a fresh statistics window."""
        self.stats = ProbeStats()

    def get_last_probe_stats(self) -> ProbeStats:
        """Copy of the statistics since the last reset."""
        return self.stats.model_copy(deep=True)

    def _failure(self, form_id: int, message: str, kind: ProbeErrorKind, status_code: int | None = None) -> ProbeResult:
        result = ProbeResult(id=form_id, found=False, error=message, error_kind=kind, status_code=status_code)
        self.stats.record(result)
        return result

    def probe_one(self, form_id: int, fetch_by_id: FetchById) -> ProbeResult:
        """Look up a single form and cache it if found.

        Fetch failures and malformed payloads are returned as unsuccessful
        results rather than raised.

        Raises:
            InvalidArgumentError: If ``form_id`` is not a non-negative integer
            DatabaseError: If the cache is corrupted
        """
        validate_form_id(form_id)

        try:
            payload = fetch_by_id(form_id)
        except Exception as e:
            kind = classify_error(e)
            message = str(e) or type(e).__name__
            if kind == ProbeErrorKind.NOT_FOUND:
                logger.debug(f"Form {form_id} not found")
            else:
                logger.debug(f"Probe of form {form_id} failed ({kind}): {message}")
            return self._failure(form_id, message, kind, get_status_code(e))

        outcome = validate_form_payload(payload)
        if isinstance(outcome, Invalid):
            logger.warning(f"Malformed response for form {form_id}: {outcome.reason}")
            return self._failure(
                form_id, f"Invalid form data in API response: {outcome.reason}", ProbeErrorKind.INVALID_RESPONSE
            )
        if outcome.value.id != form_id:
            return self._failure(
                form_id,
                f"Invalid form data in API response: requested {form_id}, received {outcome.value.id}",
                ProbeErrorKind.INVALID_RESPONSE,
            )

        record = to_cache_record(payload, default_active=False, synced_at=self.clock())
        try:
            self.store.upsert(record)
        except DatabaseError as e:
            if e.corrupted:
                raise
            return self._failure(form_id, f"Failed to cache form {form_id}: {e}", ProbeErrorKind.FATAL)
        except CacheError as e:
            return self._failure(form_id, f"Failed to cache form {form_id}: {e}", ProbeErrorKind.FATAL)

        result = ProbeResult(id=form_id, found=True, record=record)
        self.stats.record(result)
        logger.debug(f"Probed form {form_id}: '{record.title}' ({record.status_label})")
        return result

    def probe_batch(
        self,
        ids: Sequence[int],
        fetch_by_id: FetchById,
        circuit_threshold: int | None = None,
        on_progress: ProgressCallback | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> list[ProbeResult]:
        """Probe several IDs in order, guarded by the circuit breaker.

        Every miss, "not found" included, counts toward the breaker. Once it
        opens, every remaining ID is reported as a "circuit breaker open"
        failure without any further remote calls.

        Args:
            ids: IDs to probe
            fetch_by_id: Remote lookup for a single form
            circuit_threshold: Consecutive failures that open the breaker,
                for this batch only
            on_progress: Called after each attempt
            should_cancel: Checked before each attempt; True ends the batch early

        Returns:
            One result per attempted ID
        """
        for form_id in ids:
            validate_form_id(form_id)
        if circuit_threshold is not None and circuit_threshold <= 0:
            raise InvalidArgumentError("circuit_threshold", circuit_threshold, "Circuit threshold must be positive")

        self.reset_stats()
        if not ids:
            return []

        saved_threshold = self.breaker.failure_threshold
        if circuit_threshold is not None:
            self.breaker.failure_threshold = circuit_threshold
        try:
            results = self._run_batch(ids, fetch_by_id, on_progress, should_cancel)
        finally:
            self.breaker.failure_threshold = saved_threshold

        logger.info(
            f"Probe batch finished: {self.stats.attempted} attempted, "
            f"{self.stats.found} found, {self.stats.failed} failed"
        )
        return results

    def _run_batch(
        self,
        ids: Sequence[int],
        fetch_by_id: FetchById,
        on_progress: ProgressCallback | None,
        should_cancel: Callable[[], bool] | None,
    ) -> list[ProbeResult]:
        results: list[ProbeResult] = []
        for index, form_id in enumerate(ids):
            if should_cancel and should_cancel():
                logger.info(f"Probe batch cancelled after {index} of {len(ids)} IDs")
                break

            if not self.breaker.allow_request():
                remaining = ids[index:]
                logger.warning(f"Circuit breaker open, skipping {len(remaining)} remaining probes")
                for remaining_id in remaining:
                    results.append(self._failure(remaining_id, CIRCUIT_OPEN_MESSAGE, ProbeErrorKind.CIRCUIT_OPEN))
                break

            result = self.probe_one(form_id, fetch_by_id)
            results.append(result)
            if result.found:
                self.breaker.record_success()
            else:
                self.breaker.record_failure()

            if on_progress:
                on_progress(
                    ProbeProgress(
                        phase=SyncPhase.PROBE_GAPS,
                        current_id=form_id,
                        found_so_far=self.stats.found,
                        total=len(ids),
                    )
                )

            if index < len(ids) - 1:
                self._sleep(self.probe_delay)

        return results

    def probe_with_retry(
        self,
        form_id: int,
        fetch_by_id: FetchById,
        max_retries: int = ProbeConstants.DEFAULT_MAX_RETRIES,
    ) -> ProbeResult:
        """Probe one ID, retrying transient failures with exponential backoff.

        "Not found" and other non-retryable failures return immediately.

        Raises:
            InvalidArgumentError: If ``max_retries`` is negative or above the ceiling
        """
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise InvalidArgumentError("max_retries", max_retries, "Invalid retry count: must be non-negative")
        if max_retries > ProbeConstants.MAX_RETRIES_CEILING:
            raise InvalidArgumentError(
                "max_retries",
                max_retries,
                f"Max retries too high: maximum is {int(ProbeConstants.MAX_RETRIES_CEILING)}",
            )

        delays = exponential_delays(self.base_delay, self.max_delay, self.max_jitter)
        next(delays)

        def attempt(requested_id: int) -> Any:
            return fetch_by_id(requested_id)

        def wait_before_retry(details: dict[str, Any]) -> None:
            wait = next(delays)
            logger.info(
                f"Retrying form {form_id} in {wait:.2f}s (attempt {details['tries']}): {details.get('exception')}"
            )
            self._sleep(wait)

        # backoff only drives the attempt loop; waits go through the injected sleep
        retrying_fetch = backoff.on_exception(
            backoff.constant,
            Exception,
            interval=0,
            max_tries=max_retries + 1,
            jitter=None,
            giveup=lambda e: not is_retryable(e),
            on_backoff=wait_before_retry,
            logger=None,
        )(attempt)

        return self.probe_one(form_id, retrying_fetch)

    def probe_beyond_max(
        self,
        start_id: int,
        fetch_by_id: FetchById,
        options: BeyondMaxOptions | None = None,
    ) -> list[ProbeResult]:
        """Scan upward from ``start_id`` for forms missing from the active listing.

        Stops after ``max_probe_limit`` attempts or ``consecutive_failure_threshold``
        misses in a row; every found form resets the miss counter.

        Raises:
            InvalidArgumentError: If ``start_id`` is not a positive integer
        """
        if isinstance(start_id, bool) or not isinstance(start_id, int) or start_id <= 0:
            raise InvalidArgumentError("start_id", start_id, "Invalid start ID: must be positive integer")

        opts = options or BeyondMaxOptions()
        results: list[ProbeResult] = []
        current_id = start_id
        consecutive_failures = 0
        found_count = 0

        def report(phase: str) -> None:
            if opts.on_progress:
                opts.on_progress(
                    ProbeProgress(
                        phase=phase,
                        current_id=current_id,
                        found_so_far=found_count,
                        total=opts.max_probe_limit,
                    )
                )

        logger.info(f"Probing beyond max from ID {start_id}")
        while len(results) < opts.max_probe_limit and consecutive_failures < opts.consecutive_failure_threshold:
            if opts.should_cancel and opts.should_cancel():
                logger.info(f"Beyond-max scan cancelled at ID {current_id}")
                break

            result = self.probe_one(current_id, fetch_by_id)
            results.append(result)
            if result.found:
                found_count += 1
                consecutive_failures = 0
                report(SyncPhase.FOUND_FORM)
            else:
                consecutive_failures += 1
                report(SyncPhase.PROBE_BEYOND_MAX)

            current_id += 1
            if len(results) < opts.max_probe_limit and consecutive_failures < opts.consecutive_failure_threshold:
                self._sleep(opts.probe_delay_seconds)

        report(SyncPhase.COMPLETED)
        logger.info(f"Beyond-max scan probed {len(results)} IDs from {start_id}, found {found_count}")
        return results

    def find_highest_id(self, fetch_by_id: FetchById, start_id: int = ProbeConstants.DEFAULT_START_ID) -> int:
        """Find the highest existing form ID by scanning upward until a run of misses.

        Returns:
            Highest ID found, or 0 if none was found
        """
        highest_found = 0
        current_id = start_id
        misses = 0

        while misses < ProbeConstants.HIGHEST_ID_MISS_LIMIT and current_id <= ProbeConstants.HIGHEST_ID_SCAN_CEILING:
            result = self.probe_one(current_id, fetch_by_id)
            if result.found:
                highest_found = current_id
                misses = 0
            else:
                misses += 1

            current_id += 1
            self._sleep(DelayConstants.HIGHEST_ID_SCAN_DELAY)

        return highest_found

    @staticmethod
    def is_consecutive_failure(results: Sequence[ProbeResult], threshold: int) -> bool:
        """Check if the last ``threshold`` results are all misses.

        Raises:
            InvalidArgumentError: If ``threshold`` is not positive
        """
        if threshold <= 0:
            raise InvalidArgumentError("threshold", threshold, "Invalid threshold: must be positive integer")
        if not results or threshold > len(results):
            return False
        return all(not result.found for result in results[-threshold:])
