"""Core module for GFC."""

from gfc.core.gaps import find_id_gaps, generate_probe_list
from gfc.core.retry import calculate_backoff_delay, classify_error, is_retryable
from gfc.core.validation import Invalid, Valid, validate_active_list, validate_form_payload

__all__ = [
    "Invalid",
    "Valid",
    "calculate_backoff_delay",
    "classify_error",
    "find_id_gaps",
    "generate_probe_list",
    "is_retryable",
    "validate_active_list",
    "validate_form_payload",
]
