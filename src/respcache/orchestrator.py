"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: orchestrator.py.

Single public entry point combining cache lookup, request coalescing and
upstream invocation with cache population.

Per key: Absent -> InFlight -> Cached -> Absent (expiry or invalidation).
A failed or cancelled InFlight request goes straight back to Absent; failures
are never cached.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from .circuit_breaker import CircuitBreaker
from .coalescing import RequestDeduplicator, UpstreamFactory, invoke_factory
from .errors import Cancelled, CacheMiss, CircuitOpenError
from .metrics import (
    CACHE_CIRCUIT_REJECTIONS,
    CACHE_HITS,
    CACHE_MISSES,
    CacheMetrics,
    CacheStats,
    CompositeCacheMetrics,
    InMemoryCacheMetrics,
)
from .result import Ok, Result, err_from_exception
from .settings import CacheSettings
from .store import CacheStore
from .types import CachePriority, Clock, validate_key, validate_priority

T = TypeVar("T")

logger = logging.getLogger("respcache.orchestrator")


class CachedRequestOrchestrator:
    """
    Cache-aware request runtime.

    Construct one per application and pass it to whatever needs it. The store
    and the in-flight map are owned by this object; nothing else mutates them.

    An injected `store` or `deduplicator` reports to the metrics sink it was
    built with, so its counters do not show up in `stats()`. Combining `store`
    with `metrics` is rejected for that reason.
    """

    def __init__(
        self,
        *,
        settings: CacheSettings | None = None,
        store: CacheStore[Any] | None = None,
        deduplicator: RequestDeduplicator | None = None,
        breaker: CircuitBreaker | None = None,
        metrics: CacheMetrics | None = None,
        clock: Clock | None = None,
        default_upstream: str = "default",
    ) -> None:
        if store is not None and metrics is not None:
            raise ValueError(
                "Pass metrics to the CacheStore itself when injecting a store"
            )
        self._settings = settings or CacheSettings()
        self._counters = InMemoryCacheMetrics()
        self._metrics: CacheMetrics = (
            self._counters
            if metrics is None
            else CompositeCacheMetrics([self._counters, metrics])
        )
        if store is None:
            store = CacheStore(
                max_entries=self._settings.max_entries,
                default_ttl_s=self._settings.default_ttl_s,
                eviction_policy=self._settings.eviction_policy,
                clock=clock,
                metrics=self._metrics,
            )
        self._store: CacheStore[Any] = store
        if deduplicator is None:
            deduplicator = RequestDeduplicator(metrics=self._metrics)
        self._deduplicator = deduplicator
        self._breaker = breaker
        self._default_upstream = default_upstream

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    @property
    def store(self) -> CacheStore[Any]:
        return self._store

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._deduplicator

    @property
    def breaker(self) -> CircuitBreaker | None:
        return self._breaker

    async def request(
        self,
        key: str,
        factory: UpstreamFactory[T],
        *,
        ttl_s: float | None = None,
        tags: Iterable[str] = (),
        priority: CachePriority = "medium",
        upstream: str | None = None,
    ) -> T:
        """
        Return the cached value for `key`, or fetch it once and cache it.

        Concurrent callers with the same key while nothing is cached share one
        upstream call. TTL, tags and priority of the caller that dispatched the
        call are the ones stored.

        Args:
            key: Request fingerprint.
            factory: No-argument callable producing the value (sync or async).
            ttl_s: Entry lifetime; defaults to the configured TTL strategy.
            tags: Invalidation handles for the stored entry.
            priority: Eviction hint for the stored entry.
            upstream: Circuit breaker name; defaults to `default_upstream`.

        Raises:
            InvalidCacheKeyError: For malformed keys.
            Cancelled: When the in-flight request was cancelled.
            Exception: Upstream errors, propagated unchanged.
        """
        validate_key(key)
        validate_priority(priority)
        if ttl_s is not None and ttl_s < 0:
            raise ValueError("ttl_s must be >= 0")
        try:
            entry = self._store.lookup(key)
        except CacheMiss:
            self._metrics.incr(CACHE_MISSES)
        else:
            self._metrics.incr(CACHE_HITS)
            logger.debug("Cache hit (key=%s, reads=%d)", key, entry.access_count)
            return entry.value

        ttl = self._settings.ttl_for(priority) if ttl_s is None else ttl_s
        entry_tags = (tags,) if isinstance(tags, str) else tuple(tags)

        async def _fill() -> T:
            value = await self._call_upstream(factory, upstream)
            self._store.set(key, value, ttl_s=ttl, tags=entry_tags, priority=priority)
            return value

        return await self._deduplicator.submit(key, _fill)

    async def request_result(
        self,
        key: str,
        factory: UpstreamFactory[T],
        *,
        ttl_s: float | None = None,
        tags: Iterable[str] = (),
        priority: CachePriority = "medium",
        upstream: str | None = None,
    ) -> Result[T]:
        """Like `request`, but return `Ok`/`Err` instead of raising upstream errors."""
        validate_key(key)
        validate_priority(priority)
        try:
            value = await self.request(
                key,
                factory,
                ttl_s=ttl_s,
                tags=tags,
                priority=priority,
                upstream=upstream,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            return err_from_exception(exc)
        return Ok(value)

    async def _call_upstream(self, factory: UpstreamFactory[T], upstream: str | None) -> T:
        if self._breaker is None:
            return await invoke_factory(factory)

        name = upstream or self._default_upstream
        try:
            self._breaker.ensure_available(name)
        except CircuitOpenError:
            self._metrics.incr(CACHE_CIRCUIT_REJECTIONS, tags={"upstream": name})
            raise

        try:
            value = await invoke_factory(factory)
        except (asyncio.CancelledError, Cancelled):
            self._breaker.release_probe(name)
            raise
        except Exception:
            self._breaker.record_failure(name)
            raise
        self._breaker.record_success(name)
        return value

    def invalidate(
        self,
        *,
        keys: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> int:
        """Drop cached entries by explicit key or by tag."""
        if isinstance(tags, str):
            tags = (tags,)
        return self._store.invalidate(keys=keys, tags=tags)

    def cancel(self, key: str) -> bool:
        return self._deduplicator.cancel(key)

    def cancel_all(self) -> int:
        return self._deduplicator.cancel_all()

    def is_pending(self, key: str) -> bool:
        return self._deduplicator.is_pending(key)

    def is_cached(self, key: str) -> bool:
        return validate_key(key) in self._store

    def sweep_expired(self) -> int:
        return self._store.sweep_expired()

    def clear(self) -> int:
        """Drop every cached entry; in-flight requests are left running."""
        return self._store.clear()

    def stats(self) -> CacheStats:
        return self._counters.snapshot(
            entries=len(self._store),
            in_flight=len(self._deduplicator),
        )
