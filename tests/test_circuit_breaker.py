"""Tests for the circuit breaker."""

import pytest

from gfc.exceptions import APIError, CircuitOpenError, InvalidArgumentError
from gfc.services.circuit_breaker import CircuitBreaker, CircuitState


class TickClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class Operation:
    def __init__(self, fail: bool = True) -> None:
        self.fail = fail
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.fail:
            raise APIError(503, "Service unavailable")
        return "ok"


def _trip(breaker: CircuitBreaker, operation: Operation) -> None:
    for _ in range(breaker.failure_threshold):
        with pytest.raises(APIError):
            breaker.execute(operation)


def test_starts_closed():
    breaker = CircuitBreaker()
    assert breaker.state == CircuitState.CLOSED
    assert breaker.allow_request() is True


def test_opens_at_threshold_and_rejects_without_invoking():
    breaker = CircuitBreaker(failure_threshold=3, clock=TickClock())
    operation = Operation()
    _trip(breaker, operation)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        breaker.execute(operation)
    assert operation.calls == 3


def test_success_resets_failure_count():
    breaker = CircuitBreaker(failure_threshold=3)
    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()

    assert breaker.consecutive_failures == 1
    assert breaker.state == CircuitState.CLOSED


def test_trial_after_cooldown_closes_on_success():
    clock = TickClock()
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60.0, clock=clock)
    operation = Operation()
    _trip(breaker, operation)

    clock.now += 59.0
    assert breaker.allow_request() is False

    clock.now += 2.0
    operation.fail = False
    assert breaker.execute(operation) == "ok"
    assert breaker.state == CircuitState.CLOSED
    assert breaker.consecutive_failures == 0


def test_failed_trial_reopens_with_fresh_timeout():
    clock = TickClock()
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60.0, clock=clock)
    operation = Operation()
    _trip(breaker, operation)

    clock.now += 61.0
    with pytest.raises(APIError):
        breaker.execute(operation)
    assert breaker.state == CircuitState.OPEN

    clock.now += 30.0
    assert breaker.allow_request() is False
    clock.now += 31.0
    assert breaker.allow_request() is True
    assert breaker.state == CircuitState.HALF_OPEN


def test_only_one_trial_in_flight():
    clock = TickClock()
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=10.0, clock=clock)
    with pytest.raises(APIError):
        breaker.execute(Operation())

    clock.now += 11.0
    concurrent = []

    def trial() -> str:
        concurrent.append(breaker.allow_request())
        return "ok"

    breaker.execute(trial)
    assert concurrent == [False]
    assert breaker.state == CircuitState.CLOSED


def test_reset_closes_circuit():
    breaker = CircuitBreaker(failure_threshold=1, clock=TickClock())
    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN

    breaker.reset()
    assert breaker.state == CircuitState.CLOSED
    assert breaker.allow_request() is True


def test_circuit_open_error_names_operation():
    breaker = CircuitBreaker(failure_threshold=1, clock=TickClock())
    breaker.record_failure()
    with pytest.raises(CircuitOpenError, match="fetch active forms"):
        breaker.execute(Operation(), name="fetch active forms")


@pytest.mark.parametrize("kwargs", [{"failure_threshold": 0}, {"reset_timeout": -1}])
def test_invalid_configuration(kwargs):
    with pytest.raises(InvalidArgumentError):
        CircuitBreaker(**kwargs)
