"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers that build one explicitly owned cache runtime per application.
"""

from __future__ import annotations

import logging

from .circuit_breaker import CircuitBreaker
from .lifecycle import ComponentHandle, DisposerRegistry
from .maintenance import SweepScheduler
from .metrics import CacheMetrics
from .orchestrator import CachedRequestOrchestrator
from .settings import CacheSettings
from .types import Clock
from .warming import CacheWarmer, WarmupSummary

logger = logging.getLogger("respcache.factory")


def create_orchestrator(
    settings: CacheSettings | None = None,
    *,
    metrics: CacheMetrics | None = None,
    clock: Clock | None = None,
) -> CachedRequestOrchestrator:
    """Build an orchestrator (and breaker, when enabled) from settings."""
    resolved = settings or CacheSettings()
    breaker = (
        CircuitBreaker(resolved.breaker_policy(), clock=clock)
        if resolved.breaker_enabled
        else None
    )
    return CachedRequestOrchestrator(
        settings=resolved,
        breaker=breaker,
        metrics=metrics,
        clock=clock,
    )


def create_orchestrator_from_env(
    *,
    metrics: CacheMetrics | None = None,
    clock: Clock | None = None,
) -> CachedRequestOrchestrator:
    """Build an orchestrator from `RESPCACHE_*` environment variables."""
    return create_orchestrator(CacheSettings.from_env(), metrics=metrics, clock=clock)


class CacheRuntime:
    """
    Application-owned bundle of orchestrator, sweep scheduler and warmer.

    `start()` launches the periodic sweep and applies the warmup manifest when
    one is configured. `close()` cancels in-flight requests and stops the
    sweep through the disposer registry.
    """

    def __init__(
        self,
        orchestrator: CachedRequestOrchestrator,
        *,
        registry: DisposerRegistry | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.registry = registry if registry is not None else DisposerRegistry()
        self.scheduler = SweepScheduler(
            orchestrator, interval_s=orchestrator.settings.sweep_interval_s
        )
        self.warmer = CacheWarmer(orchestrator)
        self._handle: ComponentHandle | None = None

    @property
    def started(self) -> bool:
        return self._handle is not None

    async def start(self) -> WarmupSummary | None:
        if self._handle is not None:
            raise RuntimeError("CacheRuntime is already started")
        handle = self.registry.new_handle("respcache.runtime")
        self.registry.register(handle, self.orchestrator.cancel_all)
        await self.scheduler.start()
        self.registry.register(handle, self.scheduler.stop)
        self._handle = handle

        manifest = self.orchestrator.settings.warmup_manifest
        if manifest:
            return await self.warmer.warm_from_manifest(manifest)
        return None

    async def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        await self.registry.dispose(handle)
        logger.info("CacheRuntime closed")


def create_runtime(
    settings: CacheSettings | None = None,
    *,
    metrics: CacheMetrics | None = None,
    clock: Clock | None = None,
) -> CacheRuntime:
    return CacheRuntime(create_orchestrator(settings, metrics=metrics, clock=clock))
