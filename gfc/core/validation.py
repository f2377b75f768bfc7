"""Validation and transformation of raw Gravity Forms payloads.

Every raw response is checked by a ``validate_*`` function returning either
``Valid`` or ``Invalid`` before it is converted to a ``CacheRecord``.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from gfc.models.record import CacheRecord, FormBasicInfo, utc_now

T = TypeVar("T")

_TRUE_FLAGS = {"1", "true", "yes"}


class Valid(BaseModel, Generic[T]):
    """Successful validation carrying the checked value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


class Invalid(BaseModel):
    """Failed validation with a human readable reason."""

    reason: str

    @property
    def ok(self) -> bool:
        return False


def parse_flag(value: Any, default: bool = False) -> bool:
    """Parse the API's boolean flags, which arrive as "1"/"0", 1/0 or true/false."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAGS
    return default


def parse_form_id(value: Any) -> int | None:
    """Parse a form ID, returning None when it is not a non-negative integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdecimal():
            return int(stripped)
    return None


def parse_entry_count(entries: Any) -> int:
    """Count entries given as a list, a number or a numeric string."""
    if isinstance(entries, list):
        return len(entries)
    if isinstance(entries, bool) or entries is None:
        return 0
    if isinstance(entries, int):
        return max(entries, 0)
    if isinstance(entries, str) and entries.strip().isdecimal():
        return int(entries.strip())
    return 0


def validate_active_list(response: Any) -> Valid[list[dict[str, Any]]] | Invalid:
    """Validate the shape of the active forms listing.

    The listing is either a list of form objects or a mapping of form ID to
    form object.
    """
    if isinstance(response, Mapping):
        entries = list(response.values())
    elif isinstance(response, list):
        entries = response
    else:
        return Invalid(reason=f"expected a collection of forms, got {type(response).__name__}")

    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            return Invalid(reason=f"entry {index} is not an object")
        if "id" not in entry or "title" not in entry:
            return Invalid(reason=f"entry {index} is missing 'id' or 'title'")
        if entry["id"] == "" or entry["id"] is None:
            return Invalid(reason=f"entry {index} has an empty id")

    return Valid[list[dict[str, Any]]](value=[dict(entry) for entry in entries])


def validate_form_payload(payload: Any) -> Valid[FormBasicInfo] | Invalid:
    """Validate a single form payload and extract its basic metadata."""
    if not isinstance(payload, Mapping):
        return Invalid(reason=f"form payload is not an object ({type(payload).__name__})")

    form_id = parse_form_id(payload.get("id"))
    if form_id is None:
        return Invalid(reason=f"Invalid form ID: {payload.get('id')!r}")

    title = payload.get("title") or ""
    info = FormBasicInfo(
        id=form_id,
        title=str(title),
        entry_count=parse_entry_count(payload.get("entries")),
        is_active=parse_flag(payload.get("is_active"), default=True),
        is_trash=parse_flag(payload.get("is_trash")),
    )
    return Valid[FormBasicInfo](value=info)


def to_cache_record(
    payload: Mapping[str, Any], default_active: bool = True, synced_at: datetime | None = None
) -> CacheRecord:
    """Convert a validated payload to a cache record stamped with ``synced_at`` (default: now).

    Raises:
        ValueError: If the payload does not validate
    """
    outcome = validate_form_payload(payload)
    if isinstance(outcome, Invalid):
        raise ValueError(outcome.reason)

    info = outcome.value
    return CacheRecord(
        id=info.id,
        title=info.title,
        entry_count=info.entry_count,
        is_active=parse_flag(payload.get("is_active"), default=default_active),
        is_trash=info.is_trash,
        last_synced=synced_at or utc_now(),
        raw_data=dict(payload),
    )
