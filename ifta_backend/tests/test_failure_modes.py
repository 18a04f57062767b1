"""
Failure Injection Tests.

Validates resilience against routing provider failures.
"""

import pytest
import time

from ifta_backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from ifta_backend.app.core.exceptions import RoutingProviderUnavailableError


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=1)

    async def failing_func():
        raise ValueError("Boom")

    # Fail 1
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Fail 2 (Threshold reached)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Call 3 (Should be CircuitOpenError)
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers():
    """After the reset timeout one trial call is let through."""
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=30)

    async def failing_func():
        raise ValueError("Boom")

    async def healthy_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    with pytest.raises(CircuitOpenError):
        await cb.call(healthy_func)

    # Simulate the reset timeout elapsing
    cb.last_failure_time = time.monotonic() - 31
    assert await cb.call(healthy_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_half_open_failure_reopens():
    cb = CircuitBreaker(failure_threshold=3, reset_timeout=30)
    cb.state = "OPEN"
    cb.last_failure_time = time.monotonic() - 31

    async def failing_func():
        raise ValueError("Boom")

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_uncounted_exceptions_pass_through():
    cb = CircuitBreaker(
        failure_threshold=1,
        reset_timeout=60,
        counted_exceptions=(RoutingProviderUnavailableError,),
    )

    async def bad_request():
        raise KeyError("routes")

    for _ in range(3):
        with pytest.raises(KeyError):
            await cb.call(bad_request)
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)
    outcomes = iter([ValueError("Boom"), "ok", ValueError("Boom")])

    async def flaky_func():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    with pytest.raises(ValueError):
        await cb.call(flaky_func)
    assert await cb.call(flaky_func) == "ok"
    with pytest.raises(ValueError):
        await cb.call(flaky_func)

    assert cb.state == "CLOSED"
    assert cb.failures == 1
