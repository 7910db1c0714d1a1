from __future__ import annotations

import asyncio

import pytest

from respcache import (
    Cancelled,
    InMemoryCacheMetrics,
    InvalidCacheKeyError,
    RequestDeduplicator,
    UpstreamFailure,
)


def run_async(coro):
    return asyncio.run(coro)


def test_concurrent_submits_share_one_upstream_call():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        calls = 0
        payload = object()

        async def upstream():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return payload

        results = await asyncio.gather(*(dedup.submit("k", upstream) for _ in range(8)))

        assert calls == 1
        assert all(result is payload for result in results)
        assert not dedup.is_pending("k")

    run_async(scenario())


def test_waiters_resume_in_join_order():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        gate = asyncio.Event()
        order: list[int] = []

        async def upstream():
            await gate.wait()
            return "answer"

        async def caller(index: int) -> None:
            value = await dedup.submit("k", upstream)
            assert value == "answer"
            order.append(index)

        tasks = [asyncio.create_task(caller(index)) for index in range(5)]
        await asyncio.sleep(0)
        assert dedup.is_pending("k")

        gate.set()
        await asyncio.gather(*tasks)

        assert order == [0, 1, 2, 3, 4]

    run_async(scenario())


def test_failure_reaches_every_waiter_in_order_with_same_error():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        gate = asyncio.Event()
        boom = UpstreamFailure("provider down")
        seen: list[tuple[int, BaseException]] = []

        async def upstream():
            await gate.wait()
            raise boom

        async def caller(index: int) -> None:
            try:
                await dedup.submit("k", upstream)
            except UpstreamFailure as exc:
                seen.append((index, exc))

        tasks = [asyncio.create_task(caller(index)) for index in range(3)]
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(*tasks)

        assert [index for index, _ in seen] == [0, 1, 2]
        assert all(exc is boom for _, exc in seen)

    run_async(scenario())


def test_in_flight_record_is_gone_before_waiters_resume():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        calls = 0
        observed: list[bool] = []

        async def upstream():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return calls

        async def caller() -> int:
            value = await dedup.submit("k", upstream)
            observed.append(dedup.is_pending("k"))
            return value

        first = await asyncio.gather(caller(), caller())
        assert first == [1, 1]
        assert observed == [False, False]

        # A submit after settlement starts a fresh call.
        assert await dedup.submit("k", upstream) == 2
        assert len(dedup) == 0

    run_async(scenario())


def test_failed_call_is_not_reused_by_later_submit():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("first attempt fails")
            return "ok"

        with pytest.raises(RuntimeError, match="first attempt"):
            await dedup.submit("k", flaky)
        assert await dedup.submit("k", flaky) == "ok"
        assert attempts == 2

    run_async(scenario())


def test_cancel_rejects_all_waiters_and_cancels_upstream():
    async def scenario() -> None:
        metrics = InMemoryCacheMetrics()
        dedup = RequestDeduplicator(metrics=metrics)
        started = asyncio.Event()
        upstream_cancelled = asyncio.Event()

        async def upstream():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                upstream_cancelled.set()
                raise
            return "never"

        first = asyncio.create_task(dedup.submit("k", upstream))
        second = asyncio.create_task(dedup.submit("k", upstream))
        await started.wait()

        assert dedup.cancel("k") is True
        assert dedup.is_pending("k") is False
        for task in (first, second):
            with pytest.raises(Cancelled):
                await task
        await asyncio.wait_for(upstream_cancelled.wait(), timeout=1.0)

        assert dedup.cancel("k") is False
        assert metrics.get("cache_cancelled_total") == 1
        assert metrics.get("cache_coalesced_total") == 1

    run_async(scenario())


def test_cancel_all_reports_number_of_cancelled_keys():
    async def scenario() -> None:
        dedup = RequestDeduplicator()

        async def slow():
            await asyncio.sleep(10)

        tasks = [asyncio.create_task(dedup.submit(key, slow)) for key in ("a", "b")]
        await asyncio.sleep(0)
        assert sorted(dedup.pending_keys()) == ["a", "b"]

        assert dedup.cancel_all() == 2
        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(result, Cancelled) for result in results)

    run_async(scenario())


def test_sync_factory_is_supported():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        assert await dedup.submit("k", lambda: 42) == 42

    run_async(scenario())


def test_different_keys_are_not_coalesced():
    async def scenario() -> None:
        metrics = InMemoryCacheMetrics()
        dedup = RequestDeduplicator(metrics=metrics)

        async def echo(value):
            await asyncio.sleep(0)
            return value

        out = await asyncio.gather(
            dedup.submit("a", lambda: echo("a")),
            dedup.submit("b", lambda: echo("b")),
        )
        assert out == ["a", "b"]
        assert metrics.get("cache_upstream_calls_total") == 2
        assert metrics.get("cache_coalesced_total") == 0

    run_async(scenario())


def test_submit_rejects_malformed_key():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        with pytest.raises(InvalidCacheKeyError):
            await dedup.submit("", lambda: 1)

    run_async(scenario())


def test_caller_arriving_right_after_failure_starts_a_fresh_call():
    async def scenario() -> None:
        dedup = RequestDeduplicator()
        gate = asyncio.Event()
        calls = 0

        async def upstream():
            nonlocal calls
            calls += 1
            attempt = calls
            await gate.wait()
            if attempt == 1:
                raise UpstreamFailure("first attempt")
            return "fresh"

        async def late_caller():
            # Wakes in the same loop pass as the failing upstream step.
            await gate.wait()
            return await dedup.submit("k", upstream)

        first = asyncio.create_task(dedup.submit("k", upstream))
        await asyncio.sleep(0)
        late = asyncio.create_task(late_caller())
        await asyncio.sleep(0)

        gate.set()
        outcomes = await asyncio.gather(first, late, return_exceptions=True)

        assert isinstance(outcomes[0], UpstreamFailure)
        assert outcomes[1] == "fresh"
        assert calls == 2
        assert len(dedup) == 0

    run_async(scenario())
