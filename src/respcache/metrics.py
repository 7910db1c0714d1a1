"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for cache and coalescing observability.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

CACHE_HITS = "cache_hits_total"
CACHE_MISSES = "cache_misses_total"
CACHE_COALESCED = "cache_coalesced_total"
CACHE_UPSTREAM_CALLS = "cache_upstream_calls_total"
CACHE_UPSTREAM_FAILURES = "cache_upstream_failures_total"
CACHE_CANCELLED = "cache_cancelled_total"
CACHE_EVICTIONS = "cache_evictions_total"
CACHE_EXPIRATIONS = "cache_expirations_total"
CACHE_INVALIDATIONS = "cache_invalidations_total"
CACHE_CIRCUIT_REJECTIONS = "cache_circuit_rejections_total"


class CacheMetrics(Protocol):
    """Minimal metrics interface for cache instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpCacheMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time snapshot of cache counters and live sizes."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    upstream_calls: int = 0
    upstream_failures: int = 0
    cancelled: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0
    circuit_rejections: int = 0
    entries: int = 0
    in_flight: int = 0

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served from cache, 0.0 when nothing was looked up."""
        lookups = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return self.hits / lookups


class InMemoryCacheMetrics:
    """Process-local counters; labels are ignored and values summed per name."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = tags
        self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    def reset(self) -> None:
        self._counters.clear()

    def snapshot(self, *, entries: int = 0, in_flight: int = 0) -> CacheStats:
        return CacheStats(
            hits=self.get(CACHE_HITS),
            misses=self.get(CACHE_MISSES),
            coalesced=self.get(CACHE_COALESCED),
            upstream_calls=self.get(CACHE_UPSTREAM_CALLS),
            upstream_failures=self.get(CACHE_UPSTREAM_FAILURES),
            cancelled=self.get(CACHE_CANCELLED),
            evictions=self.get(CACHE_EVICTIONS),
            expirations=self.get(CACHE_EXPIRATIONS),
            invalidations=self.get(CACHE_INVALIDATIONS),
            circuit_rejections=self.get(CACHE_CIRCUIT_REJECTIONS),
            entries=entries,
            in_flight=in_flight,
        )


class CompositeCacheMetrics:
    """Fan one increment out to several sinks."""

    def __init__(self, sinks: Iterable[CacheMetrics]) -> None:
        self._sinks = list(sinks)

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        for sink in self._sinks:
            sink.incr(name, value, tags=tags)


class PrometheusCacheMetrics(CacheMetrics):
    """
    Prometheus-backed cache metrics adapter.

    Requires `prometheus_client` package.
    """

    def __init__(self, *, namespace: str = "respcache", registry=None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusCacheMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = Counter
        self._registry = registry if registry is not None else REGISTRY
        self._namespace = namespace
        self._counters: dict[str, object] = {}

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        key = f"{name}|{','.join(label_names)}"
        counter = self._counters.get(key)
        if counter is None:
            counter = self._Counter(
                name=name,
                documentation=f"respcache metric {name}",
                namespace=self._namespace,
                labelnames=label_names,
                registry=self._registry,
            )
            self._counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)
