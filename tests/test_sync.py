"""Tests for sync orchestration."""

from datetime import timedelta

import pytest

from gfc.core.constants import SyncPhase
from gfc.exceptions import APIError, SyncError
from gfc.models.record import utc_now
from gfc.models.sync import SyncOptions
from gfc.services.prober import CIRCUIT_OPEN_MESSAGE
from gfc.services.sync import SyncOrchestrator, describe_error

from conftest import FakeClock, FakeRemote, make_form


def _options(**overrides) -> SyncOptions:
    values = {"probe_delay_seconds": 0, "consecutive_failure_threshold": 3}
    values.update(overrides)
    return SyncOptions(**values)


@pytest.fixture
def remote():
    return FakeRemote([make_form(1), make_form(3), make_form(5)])


def test_discovers_active_forms_and_probes_gaps(orchestrator, store, remote):
    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())

    assert result.discovered == 3
    assert result.updated == 0
    assert result.errors == []
    assert not result.has_errors
    assert remote.fetch_calls == [2, 4, 6, 7, 8]
    assert store.get_existing_ids() == [1, 3, 5]
    assert all(record.is_active for record in store.get_all_records())


def test_discovers_inactive_and_trashed_forms(orchestrator, store, remote):
    remote.forms[2] = make_form(2, "Inactive", active=False)
    remote.forms[4] = make_form(4, "Trashed", active=False, trash=True)
    remote.forms[7] = make_form(7, "Past the listing", active=False)

    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())

    assert result.discovered == 6
    assert store.get_existing_ids() == [1, 2, 3, 4, 5, 7]
    assert store.get_record(2).is_active is False
    assert store.get_record(4).is_trash is True
    stats = orchestrator.get_cache_stats()
    assert stats.active_count == 3
    assert stats.trash_count == 1


def test_listing_keyed_by_id(orchestrator, store):
    result = orchestrator.sync_all_forms(
        lambda: {"9": {"id": "9", "title": "Keyed"}}, FakeRemote().get_form, _options()
    )
    assert result.discovered == 1
    assert store.get_record(9).title == "Keyed"


def test_empty_listing_probes_from_start(orchestrator, store):
    remote = FakeRemote([make_form(2, active=False)])
    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())

    assert remote.fetch_calls == [1, 2, 3, 4, 5]
    assert result.discovered == 1


def test_full_sync_refreshes_existing_records(orchestrator, remote):
    orchestrator.perform_initial_sync(remote.list_forms, remote.get_form, _options())
    result = orchestrator.perform_initial_sync(remote.list_forms, remote.get_form, _options())

    assert result.full_sync is True
    assert result.discovered == 0
    assert result.updated == 3


def test_incremental_sync_skips_fresh_records(orchestrator, remote):
    remote.forms[2] = make_form(2, active=False)
    orchestrator.perform_initial_sync(remote.list_forms, remote.get_form, _options())
    remote.fetch_calls.clear()

    result = orchestrator.perform_incremental_sync(remote.list_forms, remote.get_form, _options())

    assert result.full_sync is False
    assert result.discovered == 0
    assert result.updated == 0
    assert remote.fetch_calls == [4, 6, 7, 8]


def test_last_full_sync_recorded_only_for_full_syncs(orchestrator, remote):
    orchestrator.perform_incremental_sync(remote.list_forms, remote.get_form, _options())
    stats = orchestrator.get_cache_stats()
    assert stats.last_sync is not None
    assert stats.last_full_sync is None

    orchestrator.perform_initial_sync(remote.list_forms, remote.get_form, _options())
    assert orchestrator.get_cache_stats().last_full_sync is not None


def test_hybrid_runs_full_sync_first(orchestrator, remote):
    result = orchestrator.perform_hybrid_sync(remote.list_forms, remote.get_form, options=_options())
    assert result.full_sync is True


def test_hybrid_runs_incremental_within_interval(orchestrator, remote):
    orchestrator.staleness.record_last_full_sync(utc_now() - timedelta(hours=1))
    result = orchestrator.perform_hybrid_sync(
        remote.list_forms, remote.get_form, full_sync_interval_hours=24, options=_options()
    )
    assert result.full_sync is False


def test_hybrid_runs_full_sync_after_interval(orchestrator, remote):
    orchestrator.staleness.record_last_full_sync(utc_now() - timedelta(hours=25))
    result = orchestrator.perform_hybrid_sync(
        remote.list_forms, remote.get_form, full_sync_interval_hours=24, options=_options()
    )
    assert result.full_sync is True


def test_partial_failures_are_reported(orchestrator, remote):
    remote.failures[4] = APIError(500, "Internal server error")
    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())

    assert result.discovered == 3
    assert result.errors == ["Form 4: Internal server error"]


def test_not_found_is_never_an_error(orchestrator):
    remote = FakeRemote([make_form(10)])
    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())
    assert result.errors == []


def test_open_circuit_skips_remaining_gaps(orchestrator):
    remote = FakeRemote([make_form(10)])
    for form_id in range(1, 10):
        remote.failures[form_id] = APIError(503, "Service unavailable")

    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options(circuit_breaker_threshold=2))

    assert remote.fetch_calls[:2] == [1, 2]
    assert 3 not in remote.fetch_calls
    assert result.discovered == 1
    assert len(result.errors) == 9
    assert result.errors[-1] == f"Form 9: {CIRCUIT_OPEN_MESSAGE}"


def test_run_of_deleted_ids_opening_circuit_is_not_an_error(orchestrator):
    remote = FakeRemote([make_form(1), make_form(10)])
    options = _options(circuit_breaker_threshold=3)

    first = orchestrator.perform_initial_sync(remote.list_forms, remote.get_form, options)
    assert remote.fetch_calls[:3] == [2, 3, 4]
    assert 5 not in remote.fetch_calls
    assert first.errors == []

    second = orchestrator.perform_incremental_sync(remote.list_forms, remote.get_form, options)
    assert second.discovered == 0
    assert second.updated == 0
    assert second.errors == []


def test_open_circuit_reported_when_run_held_other_failures(orchestrator):
    remote = FakeRemote([make_form(10)])
    remote.failures[2] = APIError(503, "Service unavailable")

    result = orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options(circuit_breaker_threshold=3))

    assert result.errors[0] == "Form 2: Service unavailable"
    assert result.errors[1:] == [f"Form {form_id}: {CIRCUIT_OPEN_MESSAGE}" for form_id in range(4, 10)]


def test_records_stamped_with_orchestrator_clock(store):
    clock = FakeClock()
    orchestrator = SyncOrchestrator(store, clock=clock)
    remote = FakeRemote([make_form(1), make_form(2), make_form(4, active=False)])

    orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())
    assert {record.last_synced for record in store.get_all_records()} == {clock.now}

    clock.advance(hours=2)
    result = orchestrator.perform_incremental_sync(remote.list_forms, remote.get_form, _options(max_age_seconds=3600))
    assert result.updated == 3
    assert store.get_record(4).last_synced == clock.now


def test_no_progress_with_errors_raises(orchestrator, store, remote):
    orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options())
    remote.failures[6] = APIError(500, "Internal server error")

    with pytest.raises(SyncError) as exc_info:
        orchestrator.perform_incremental_sync(remote.list_forms, remote.get_form, _options())

    assert exc_info.value.errors == ["Form 6: Internal server error"]
    assert "1 errors" in describe_error(exc_info.value)


def test_listing_failure_raises(orchestrator):
    def broken_listing():
        raise APIError(500, "Internal server error")

    with pytest.raises(SyncError, match="Failed to fetch active forms"):
        orchestrator.sync_all_forms(broken_listing, FakeRemote().get_form, _options())


def test_malformed_listing_raises(orchestrator):
    with pytest.raises(SyncError, match="Invalid API response format"):
        orchestrator.sync_all_forms(lambda: "not a listing", FakeRemote().get_form, _options())


def test_invalid_listing_entries_are_skipped(orchestrator, store):
    listing = [{"id": "2", "title": "Good"}, {"id": "bad", "title": "Broken"}]
    result = orchestrator.sync_all_forms(lambda: listing, FakeRemote().get_form, _options())

    assert result.discovered == 1
    assert len(result.errors) == 1
    assert "Invalid form ID" in result.errors[0]


def test_progress_phases(orchestrator, remote):
    events = []
    orchestrator.sync_all_forms(remote.list_forms, remote.get_form, _options(on_progress=events.append))
    phases = [event.phase for event in events]

    assert phases[0] == SyncPhase.FETCH_ACTIVE
    assert SyncPhase.PROBE_GAPS in phases
    assert SyncPhase.PROBE_BEYOND_MAX in phases
    assert phases[-1] == SyncPhase.COMPLETION


def test_cancellation_after_listing(orchestrator, remote):
    result = orchestrator.sync_all_forms(
        remote.list_forms, remote.get_form, _options(should_cancel=lambda: remote.list_calls > 0)
    )

    assert result.cancelled is True
    assert remote.fetch_calls == []
    assert result.discovered == 3
    assert orchestrator.get_cache_stats().last_sync is None


def test_refresh_if_stale(orchestrator, remote):
    assert orchestrator.refresh_if_stale(remote.list_forms, remote.get_form, options=_options()) is not None
    assert orchestrator.refresh_if_stale(remote.list_forms, remote.get_form, options=_options()) is None


def test_invalidate_cache(orchestrator, remote):
    orchestrator.perform_initial_sync(remote.list_forms, remote.get_form, _options())
    orchestrator.invalidate_cache()

    stats = orchestrator.get_cache_stats()
    assert stats.total_forms == 0
    assert stats.last_sync is None
    assert stats.last_full_sync is None
