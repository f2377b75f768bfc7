"""Error classification and exponential backoff helpers."""

import builtins
import random
from collections.abc import Generator

import requests

from gfc.core.constants import DelayConstants
from gfc.exceptions import (
    APIError,
    CircuitOpenError,
    ConnectionFailedError,
    RateLimitError,
    TimeoutError,
    ValidationError,
)
from gfc.models.probe import ProbeErrorKind

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def get_status_code(error: BaseException) -> int | None:
    """Extract an HTTP-like status code from an error, if it carries one."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_error(error: BaseException) -> ProbeErrorKind:
    """Map an exception raised by a fetch call to a probe error kind."""
    if isinstance(error, CircuitOpenError):
        return ProbeErrorKind.CIRCUIT_OPEN
    if isinstance(error, ValidationError | ValueError):
        return ProbeErrorKind.INVALID_RESPONSE

    status = get_status_code(error)
    if status == 404:
        return ProbeErrorKind.NOT_FOUND
    if status is not None:
        return ProbeErrorKind.RETRYABLE if status in RETRYABLE_STATUS_CODES else ProbeErrorKind.FATAL

    if isinstance(
        error,
        TimeoutError
        | ConnectionFailedError
        | RateLimitError
        | requests.exceptions.Timeout
        | requests.exceptions.ConnectionError
        | builtins.TimeoutError
        | builtins.ConnectionError,
    ):
        return ProbeErrorKind.RETRYABLE
    return ProbeErrorKind.FATAL


def is_retryable(error: BaseException) -> bool:
    """Check if an error is transient and worth retrying."""
    if isinstance(error, APIError) and error.status_code == 404:
        return False
    return classify_error(error) == ProbeErrorKind.RETRYABLE


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = DelayConstants.BACKOFF_BASE_DELAY,
    max_delay: float = DelayConstants.BACKOFF_MAX_DELAY,
    max_jitter: float = DelayConstants.BACKOFF_MAX_JITTER,
    multiplier: float = 2.0,
) -> float:
    """Delay in seconds before retry number ``attempt`` (0-based).

    Computed as ``min(base_delay * multiplier**attempt + jitter, max_delay)``.
    """
    exponential = base_delay * multiplier**attempt
    jitter = random.uniform(0, max_jitter) if max_jitter > 0 else 0.0
    return min(exponential + jitter, max_delay)


def exponential_delays(
    base_delay: float = DelayConstants.BACKOFF_BASE_DELAY,
    max_delay: float = DelayConstants.BACKOFF_MAX_DELAY,
    max_jitter: float = DelayConstants.BACKOFF_MAX_JITTER,
    multiplier: float = 2.0,
) -> Generator[float | None, None, None]:
    """Jittered, capped retry delays, usable as a ``backoff`` wait generator.

    The first value is None, the priming value backoff expects.
    """
    yield None
    attempt = 0
    while True:
        yield calculate_backoff_delay(attempt, base_delay, max_delay, max_jitter, multiplier)
        attempt += 1
