"""Tests for remote payload validation and transformation."""

from datetime import datetime, timezone

import pytest

from gfc.core.validation import (
    Invalid,
    Valid,
    parse_entry_count,
    parse_flag,
    to_cache_record,
    validate_active_list,
    validate_form_payload,
)


def test_listing_as_list_is_valid():
    outcome = validate_active_list([{"id": "1", "title": "Contact"}, {"id": 2, "title": "Quote"}])
    assert isinstance(outcome, Valid)
    assert [entry["id"] for entry in outcome.value] == ["1", 2]


def test_listing_keyed_by_id_is_valid():
    outcome = validate_active_list({"3": {"id": "3", "title": "Survey"}})
    assert isinstance(outcome, Valid)
    assert outcome.value == [{"id": "3", "title": "Survey"}]


def test_empty_listing_is_valid():
    assert isinstance(validate_active_list([]), Valid)


@pytest.mark.parametrize(
    "response",
    [
        "forms",
        None,
        42,
        [{"id": "1"}],
        [{"title": "No id"}],
        [{"id": "", "title": "Empty id"}],
        ["not an object"],
        {"invalid": "response format"},
    ],
)
def test_malformed_listings_are_invalid(response):
    outcome = validate_active_list(response)
    assert isinstance(outcome, Invalid)
    assert not outcome.ok
    assert outcome.reason


def test_form_payload_extracts_metadata():
    outcome = validate_form_payload(
        {"id": "12", "title": "Signup", "is_active": "0", "is_trash": "1", "entries": [{}, {}, {}]}
    )
    assert isinstance(outcome, Valid)
    info = outcome.value
    assert info.id == 12
    assert info.title == "Signup"
    assert info.is_active is False
    assert info.is_trash is True
    assert info.entry_count == 3


@pytest.mark.parametrize("form_id", ["abc", None, -1, "1.5", True, "²", "1²"])
def test_form_payload_with_unparseable_id_is_invalid(form_id):
    outcome = validate_form_payload({"id": form_id, "title": "x"})
    assert isinstance(outcome, Invalid)
    assert "Invalid form ID" in outcome.reason


def test_form_id_zero_is_valid():
    outcome = validate_form_payload({"id": "0", "title": "Zero"})
    assert isinstance(outcome, Valid)
    assert outcome.value.id == 0


def test_non_mapping_payload_is_invalid():
    assert isinstance(validate_form_payload(["id", 1]), Invalid)


@pytest.mark.parametrize(
    "value,expected",
    [("1", True), ("0", False), (1, True), (0, False), (True, True), (False, False), ("true", True), ("", False)],
)
def test_parse_flag(value, expected):
    assert parse_flag(value) is expected


def test_parse_flag_default_applies_to_missing_value():
    assert parse_flag(None, default=True) is True
    assert parse_flag(None) is False


@pytest.mark.parametrize(
    "entries,expected", [([1, 2], 2), (7, 7), ("15", 15), ("n/a", 0), (None, 0), (-2, 0), ("²", 0)]
)
def test_parse_entry_count(entries, expected):
    assert parse_entry_count(entries) == expected


def test_to_cache_record_keeps_raw_payload():
    payload = {"id": "4", "title": "Feedback", "fields": [{"id": 1, "type": "text"}]}
    record = to_cache_record(payload)

    assert record.id == 4
    assert record.is_active is True
    assert record.is_trash is False
    assert record.raw_data == payload
    assert record.last_synced.tzinfo is not None


def test_to_cache_record_default_active_only_for_missing_flag():
    assert to_cache_record({"id": "4", "title": "x"}, default_active=False).is_active is False
    assert to_cache_record({"id": "4", "title": "x", "is_active": "1"}, default_active=False).is_active is True


def test_to_cache_record_rejects_invalid_payload():
    with pytest.raises(ValueError, match="Invalid form ID"):
        to_cache_record({"id": "nope", "title": "x"})


def test_to_cache_record_uses_given_sync_time():
    synced_at = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
    record = to_cache_record({"id": "4", "title": "x"}, synced_at=synced_at)
    assert record.last_synced == synced_at
