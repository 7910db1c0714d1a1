from __future__ import annotations

import asyncio

import pytest

from respcache import (
    Cancelled,
    CircuitBreaker,
    CircuitBreakerPolicy,
    CircuitOpenError,
    Err,
    UpstreamFailure,
    UpstreamTimeout,
    classify_error,
    with_timeout,
)
from respcache.result import err_from_exception


def test_breaker_opens_after_threshold_and_probes_after_cooldown(clock):
    breaker = CircuitBreaker(
        CircuitBreakerPolicy(failure_threshold=3, cooldown_s=30.0), clock=clock
    )
    for _ in range(2):
        breaker.ensure_available("llm")
        breaker.record_failure("llm")
    assert breaker.state("llm") == "closed"

    breaker.record_failure("llm")
    assert breaker.state("llm") == "open"
    with pytest.raises(CircuitOpenError) as exc_info:
        breaker.ensure_available("llm")
    assert exc_info.value.upstream == "llm"

    clock.advance(30.0)
    assert breaker.state("llm") == "half_open"
    breaker.ensure_available("llm")
    with pytest.raises(CircuitOpenError):
        breaker.ensure_available("llm")


def test_failed_probe_reopens_the_circuit(clock):
    breaker = CircuitBreaker(
        CircuitBreakerPolicy(failure_threshold=1, cooldown_s=5.0), clock=clock
    )
    breaker.record_failure("llm")
    clock.advance(5.0)
    breaker.ensure_available("llm")
    breaker.record_failure("llm")

    assert breaker.state("llm") == "open"
    clock.advance(4.0)
    with pytest.raises(CircuitOpenError):
        breaker.ensure_available("llm")


def test_success_threshold_requires_several_probes(clock):
    breaker = CircuitBreaker(
        CircuitBreakerPolicy(failure_threshold=1, cooldown_s=1.0, success_threshold=2),
        clock=clock,
    )
    breaker.record_failure("llm")
    clock.advance(1.0)

    breaker.ensure_available("llm")
    breaker.record_success("llm")
    assert breaker.state("llm") == "half_open"

    breaker.ensure_available("llm")
    breaker.record_success("llm")
    assert breaker.state("llm") == "closed"


def test_released_probe_can_be_taken_again(clock):
    breaker = CircuitBreaker(
        CircuitBreakerPolicy(failure_threshold=1, cooldown_s=1.0), clock=clock
    )
    breaker.record_failure("llm")
    clock.advance(1.0)
    breaker.ensure_available("llm")
    breaker.release_probe("llm")
    breaker.ensure_available("llm")


def test_success_in_closed_state_resets_failure_count():
    breaker = CircuitBreaker(CircuitBreakerPolicy(failure_threshold=2))
    breaker.record_failure("llm")
    breaker.record_success("llm")
    breaker.record_failure("llm")
    assert breaker.state("llm") == "closed"


def test_upstreams_are_tracked_independently_and_reset(clock):
    breaker = CircuitBreaker(CircuitBreakerPolicy(failure_threshold=1), clock=clock)
    breaker.record_failure("a")
    assert breaker.state("a") == "open"
    assert breaker.state("b") == "closed"

    breaker.reset("a")
    assert breaker.state("a") == "closed"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"failure_threshold": 0},
        {"cooldown_s": -1.0},
        {"half_open_max_calls": 0},
        {"success_threshold": 0},
    ],
)
def test_policy_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        CircuitBreakerPolicy(**kwargs)


def test_with_timeout_raises_upstream_timeout():
    async def hangs():
        await asyncio.sleep(10)

    async def scenario() -> None:
        with pytest.raises(UpstreamTimeout) as exc_info:
            await with_timeout(hangs, 0.01)()
        assert exc_info.value.timeout_s == 0.01

    asyncio.run(scenario())


def test_with_timeout_passes_through_fast_and_sync_results():
    async def fast():
        return "quick"

    async def scenario() -> None:
        assert await with_timeout(fast, 1.0)() == "quick"
        assert await with_timeout(lambda: 7, None)() == 7

    asyncio.run(scenario())


def test_with_timeout_rejects_non_positive_deadline():
    with pytest.raises(ValueError):
        with_timeout(lambda: 1, 0)


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (Cancelled("k"), "cancelled"),
        (asyncio.CancelledError(), "cancelled"),
        (UpstreamTimeout(1.0), "timeout"),
        (asyncio.TimeoutError(), "timeout"),
        (CircuitOpenError("llm"), "circuit_open"),
        (UpstreamFailure("boom"), "upstream"),
        (KeyError("x"), "upstream"),
    ],
)
def test_classify_error(error, kind):
    assert classify_error(error) == kind


def test_err_from_exception_falls_back_to_type_name():
    err = err_from_exception(RuntimeError())
    assert isinstance(err, Err)
    assert err.message == "RuntimeError"
    assert err.ok is False
