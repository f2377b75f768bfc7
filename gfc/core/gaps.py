"""ID gap detection over known form IDs."""

from collections.abc import Iterable

from gfc.core.constants import ProbeConstants
from gfc.exceptions import InvalidArgumentError


def _is_positive_int(value: object) -> bool:
    # bool is an int subclass but never a valid ID
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def find_id_gaps(known_ids: Iterable[int], start_id: int = ProbeConstants.DEFAULT_START_ID) -> list[int]:
    """Find IDs missing from ``known_ids`` between ``start_id`` and the highest known ID.

    Args:
        known_ids: IDs already known to exist (duplicates and any order allowed)
        start_id: Lowest ID to consider

    Returns:
        Missing IDs in ascending order; empty when ``known_ids`` is empty

    Raises:
        InvalidArgumentError: If any ID or ``start_id`` is not a positive integer
    """
    ids = list(known_ids)
    for form_id in ids:
        if not _is_positive_int(form_id):
            raise InvalidArgumentError("known_ids", form_id, "Invalid form IDs: must be positive integers")
    if not _is_positive_int(start_id):
        raise InvalidArgumentError("start_id", start_id, "Start ID must be a positive integer")

    if not ids:
        return []

    known = set(ids)
    return [form_id for form_id in range(start_id, max(known) + 1) if form_id not in known]


def generate_probe_list(active_ids: Iterable[int], start_id: int = ProbeConstants.DEFAULT_START_ID) -> list[int]:
    """Build the list of IDs worth probing from the active listing.

    ID 0 is a valid cache key but never part of a gap range, so it is skipped.
    """
    return find_id_gaps((form_id for form_id in active_ids if form_id != 0), start_id=start_id)
