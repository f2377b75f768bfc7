"""Sync orchestration: rebuild the full form catalog from an incomplete API.

A sync runs four phases in order:

1. fetch-active: read the active listing and cache new or stale entries
2. probe-gaps: probe IDs missing between the start ID and the highest active ID
3. probe-beyond-max: scan upward past the highest active ID
4. completion: record sync timestamps

"Not found" probe results are expected during discovery and never reported as
errors, and neither is an open circuit when only misses opened it. A run that
discovers and updates nothing while hitting other errors raises ``SyncError``;
any other run returns a ``SyncResult`` whose ``errors`` list describes partial
failures.
"""

import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from gfc.cache.staleness import StalenessTracker
from gfc.cache.store import FormStore
from gfc.core.constants import CacheLimits, SyncPhase
from gfc.core.gaps import generate_probe_list
from gfc.core.validation import Invalid, to_cache_record, validate_active_list, validate_form_payload
from gfc.exceptions import GFCError, SyncError
from gfc.models.probe import BeyondMaxOptions, ProbeErrorKind, ProbeProgress, ProbeResult
from gfc.models.record import CacheRecord, utc_now
from gfc.models.sync import CacheStats, SyncOptions, SyncResult
from gfc.services.circuit_breaker import CircuitBreaker
from gfc.services.prober import FetchById, Prober

logger = logging.getLogger(__name__)

FetchActiveList = Callable[[], Any]


class SyncOrchestrator:
    """Combines the active listing, gap probing and beyond-max scanning into syncs.

    Args:
        store: Initialized form store
        prober: Prober writing into the same store
        staleness: Staleness tracker reading the same store
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        store: FormStore,
        prober: Prober | None = None,
        staleness: StalenessTracker | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.prober = prober or Prober(store, CircuitBreaker(), clock=clock)
        self.staleness = staleness or StalenessTracker(store, clock=clock)
        self.clock = clock

    def _report(self, options: SyncOptions, phase: str, current_id: int = 0, found_so_far: int = 0) -> None:
        if options.on_progress:
            options.on_progress(ProbeProgress(phase=phase, current_id=current_id, found_so_far=found_so_far))

    def _cancelled(self, options: SyncOptions) -> bool:
        return bool(options.should_cancel and options.should_cancel())

    def _fetch_active(
        self, fetch_active_list: FetchActiveList, options: SyncOptions, result: SyncResult
    ) -> list[CacheRecord]:
        """Phase 1: read the active listing and cache new or stale entries."""
        self._report(options, SyncPhase.FETCH_ACTIVE)
        try:
            response = self.prober.breaker.execute(fetch_active_list, name="fetch_active_list")
        except Exception as e:
            logger.error(f"Failed to fetch active forms: {e}")
            raise SyncError(f"Failed to fetch active forms: {e}", [str(e)]) from e

        outcome = validate_active_list(response)
        if isinstance(outcome, Invalid):
            message = f"Invalid API response format: {outcome.reason}"
            logger.error(message)
            raise SyncError(f"Failed to fetch active forms: {message}", [message])

        records: list[CacheRecord] = []
        for entry in outcome.value:
            entry_outcome = validate_form_payload(entry)
            if isinstance(entry_outcome, Invalid):
                result.errors.append(f"Skipped active form entry: {entry_outcome.reason}")
                continue

            record = to_cache_record(entry, default_active=True, synced_at=self.clock())
            records.append(record)

            existing = self.store.get_record(record.id)
            if existing is None:
                self.store.upsert(record)
                result.discovered += 1
            elif options.force_full_sync or self.staleness.is_record_stale(existing, options.max_age_seconds):
                self.store.upsert(record)
                result.updated += 1

        logger.info(
            f"Fetched {len(records)} active forms ({result.discovered} new, {result.updated} refreshed)"
        )
        return records

    def _select_gap_ids(self, active_ids: Iterable[int], options: SyncOptions) -> list[int]:
        """Gap IDs worth probing: all of them on a full sync, untracked or stale ones otherwise."""
        gaps = generate_probe_list(active_ids, start_id=options.start_id)
        if options.force_full_sync:
            return gaps

        selected = []
        for form_id in gaps:
            cached = self.store.get_record(form_id)
            if cached is None or self.staleness.is_record_stale(cached, options.max_age_seconds):
                selected.append(form_id)
        return selected

    def _absorb(self, results: list[ProbeResult], known_ids: set[int], result: SyncResult) -> int:
        """Fold probe results into the sync result, suppressing expected misses.

        Skipped IDs behind an open circuit are reported only when the failure
        run that opened it held at least one failure other than "not found";
        a stretch of deleted IDs is not an error.

        Returns:
            Number of errors reported, not counting skipped IDs
        """
        failed = 0
        run_has_error = False
        for probe in results:
            if probe.found:
                run_has_error = False
                if probe.id in known_ids:
                    result.updated += 1
                else:
                    result.discovered += 1
                    known_ids.add(probe.id)
            elif probe.is_not_found:
                continue
            elif probe.error_kind == ProbeErrorKind.CIRCUIT_OPEN:
                if run_has_error:
                    result.errors.append(f"Form {probe.id}: {probe.error}")
                else:
                    logger.debug(f"Form {probe.id} skipped after a run of missing IDs")
            else:
                run_has_error = True
                failed += 1
                result.errors.append(f"Form {probe.id}: {probe.error}")
        return failed

    def sync_all_forms(
        self,
        fetch_active_list: FetchActiveList,
        fetch_by_id: FetchById,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        """Run one sync cycle.

        Raises:
            SyncError: If the active listing cannot be read, or if nothing was
                discovered or updated and at least one fetch or cache error occurred
        """
        opts = options or SyncOptions()
        start = time.perf_counter()
        result = SyncResult(full_sync=opts.force_full_sync)
        mode = "full" if opts.force_full_sync else "incremental"
        logger.info(f"Starting {mode} sync")

        # One breaker and one stats window per sync run
        self.prober.breaker.reset()
        self.prober.reset_stats()
        known_ids = set(self.store.get_existing_ids())

        active_records = self._fetch_active(fetch_active_list, opts, result)
        failed = len(result.errors)
        known_ids.update(record.id for record in active_records)
        active_ids = [record.id for record in active_records]

        # Phase 2: gaps below the highest active ID
        if not self._cancelled(opts):
            gap_ids = self._select_gap_ids(active_ids, opts)
            self._report(opts, SyncPhase.PROBE_GAPS)
            if gap_ids:
                logger.info(f"Probing {len(gap_ids)} gap IDs")
                gap_results = self.prober.probe_batch(
                    gap_ids,
                    fetch_by_id,
                    circuit_threshold=opts.circuit_breaker_threshold,
                    on_progress=opts.on_progress,
                    should_cancel=opts.should_cancel,
                )
                failed += self._absorb(gap_results, known_ids, result)

        # Phase 3: beyond the highest active ID
        if not self._cancelled(opts):
            start_id = max(active_ids) + 1 if active_ids else 1
            self._report(opts, SyncPhase.PROBE_BEYOND_MAX, current_id=start_id)
            beyond_results = self.prober.probe_beyond_max(
                start_id,
                fetch_by_id,
                BeyondMaxOptions(
                    consecutive_failure_threshold=opts.consecutive_failure_threshold,
                    max_probe_limit=opts.max_probe_limit,
                    probe_delay_seconds=opts.probe_delay_seconds,
                    on_progress=opts.on_progress,
                    should_cancel=opts.should_cancel,
                ),
            )
            failed += self._absorb(beyond_results, known_ids, result)

        result.cancelled = self._cancelled(opts)
        result.duration = (time.perf_counter() - start) * 1000
        result.last_sync_time = self.clock()

        # Skipped IDs alone never fail a sync
        if result.discovered == 0 and result.updated == 0 and failed:
            logger.error(f"Sync made no progress ({len(result.errors)} errors, duration {result.duration:.0f}ms)")
            raise SyncError(f"Sync failed with no progress: {result.errors[0]}", result.errors)

        # Phase 4: completion
        self._report(opts, SyncPhase.COMPLETION)
        if not result.cancelled:
            self.staleness.record_last_sync(result.last_sync_time)
            if opts.force_full_sync:
                self.staleness.record_last_full_sync(result.last_sync_time)

        logger.info(
            f"Finished {mode} sync: {result.discovered} discovered, {result.updated} updated, "
            f"{len(result.errors)} errors, duration {result.duration:.0f}ms"
        )
        return result

    def perform_initial_sync(
        self, fetch_active_list: FetchActiveList, fetch_by_id: FetchById, options: SyncOptions | None = None
    ) -> SyncResult:
        """Run a full sync, refreshing every record."""
        opts = (options or SyncOptions()).model_copy(update={"force_full_sync": True})
        return self.sync_all_forms(fetch_active_list, fetch_by_id, opts)

    def perform_incremental_sync(
        self, fetch_active_list: FetchActiveList, fetch_by_id: FetchById, options: SyncOptions | None = None
    ) -> SyncResult:
        """Run an incremental sync, refreshing only new or stale records."""
        opts = (options or SyncOptions()).model_copy(update={"force_full_sync": False})
        return self.sync_all_forms(fetch_active_list, fetch_by_id, opts)

    def perform_hybrid_sync(
        self,
        fetch_active_list: FetchActiveList,
        fetch_by_id: FetchById,
        full_sync_interval_hours: float = CacheLimits.FULL_SYNC_INTERVAL_HOURS,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        """Run a full sync if the interval has elapsed since the last one, else incremental."""
        if self.staleness.needs_full_sync(full_sync_interval_hours):
            logger.info(f"No full sync in the last {full_sync_interval_hours}h, running full sync")
            return self.perform_initial_sync(fetch_active_list, fetch_by_id, options)
        return self.perform_incremental_sync(fetch_active_list, fetch_by_id, options)

    def refresh_if_stale(
        self,
        fetch_active_list: FetchActiveList,
        fetch_by_id: FetchById,
        max_age_seconds: float = CacheLimits.DEFAULT_MAX_AGE_SECONDS,
        options: SyncOptions | None = None,
    ) -> SyncResult | None:
        """Run an incremental sync only when the cache is stale.

        Returns:
            The sync result, or None when the cache was fresh
        """
        if not self.staleness.is_stale(max_age_seconds):
            logger.debug("Cache is fresh, skipping refresh")
            return None
        opts = (options or SyncOptions()).model_copy(update={"max_age_seconds": max_age_seconds})
        return self.perform_incremental_sync(fetch_active_list, fetch_by_id, opts)

    def invalidate_cache(self) -> None:
        """Drop every cached record and all sync bookkeeping."""
        self.store.clear()

    def get_cache_stats(self) -> CacheStats:
        """Current cache statistics."""
        return self.store.get_cache_stats()


def describe_error(error: GFCError) -> str:
    """One-line description of a sync failure for operators."""
    if isinstance(error, SyncError) and error.errors:
        return f"{error} ({len(error.errors)} errors)"
    return str(error)
