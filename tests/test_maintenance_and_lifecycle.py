from __future__ import annotations

import asyncio

import pytest

from respcache import CacheStore, ComponentHandle, DisposerRegistry, SweepScheduler


def test_tick_sweeps_expired_entries(clock):
    store = CacheStore(clock=clock)
    store.set("a", 1, ttl_s=1.0)
    store.set("b", 2, ttl_s=50.0)
    scheduler = SweepScheduler(store, interval_s=10.0)

    assert scheduler.tick() == 0
    clock.advance(2.0)
    assert scheduler.tick() == 1

    assert scheduler.ticks == 2
    assert scheduler.swept_total == 1
    assert store.keys() == ["b"]


def test_scheduler_runs_in_background_until_stopped():
    class Target:
        def __init__(self) -> None:
            self.calls = 0

        def sweep_expired(self) -> int:
            self.calls += 1
            return 0

    async def scenario() -> None:
        target = Target()
        scheduler = SweepScheduler(target, interval_s=0.01)
        await scheduler.start()
        assert scheduler.is_running()
        with pytest.raises(RuntimeError):
            await scheduler.start()

        await asyncio.sleep(0.05)
        await scheduler.stop()
        assert not scheduler.is_running()
        assert target.calls >= 1

        calls = target.calls
        await asyncio.sleep(0.03)
        assert target.calls == calls

    asyncio.run(scenario())


def test_scheduler_survives_failing_sweeps():
    class Broken:
        def __init__(self) -> None:
            self.calls = 0

        def sweep_expired(self) -> int:
            self.calls += 1
            raise RuntimeError("sweep failed")

    async def scenario() -> None:
        target = Broken()
        scheduler = SweepScheduler(target, interval_s=0.01)
        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()
        assert target.calls >= 2

    asyncio.run(scenario())


def test_scheduler_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        SweepScheduler(CacheStore(), interval_s=0)


def test_dispose_runs_disposers_in_reverse_order():
    async def scenario() -> None:
        registry = DisposerRegistry()
        handle = registry.new_handle("component")
        order: list[str] = []

        async def close_async() -> None:
            order.append("async")

        registry.register(handle, lambda: order.append("first"))
        registry.register(handle, close_async)

        assert await registry.dispose(handle) == 2
        assert order == ["async", "first"]
        assert not registry.is_registered(handle)
        assert await registry.dispose(handle) == 0

    asyncio.run(scenario())


def test_dispose_runs_every_disposer_and_reraises_first_error():
    async def scenario() -> None:
        registry = DisposerRegistry()
        handle = registry.new_handle("component")
        ran: list[str] = []

        def ok() -> None:
            ran.append("ok")

        def broken() -> None:
            raise RuntimeError("close failed")

        registry.register(handle, ok)
        registry.register(handle, broken)

        with pytest.raises(RuntimeError, match="close failed"):
            await registry.dispose(handle)
        assert ran == ["ok"]

    asyncio.run(scenario())


def test_register_on_unknown_handle_fails():
    registry = DisposerRegistry()
    with pytest.raises(KeyError):
        registry.register(ComponentHandle(id=99, name="ghost"), lambda: None)


def test_dispose_all_clears_every_handle():
    async def scenario() -> None:
        registry = DisposerRegistry()
        order: list[str] = []
        for name in ("a", "b"):
            handle = registry.new_handle(name)
            registry.register(handle, lambda name=name: order.append(name))

        assert await registry.dispose_all() == 2
        assert order == ["b", "a"]
        assert len(registry) == 0

    asyncio.run(scenario())
