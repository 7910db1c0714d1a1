"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Response cache and request coalescing layer for chat upstream calls.

Concurrent identical requests share one upstream call, successful results are
cached with TTL, tags and priority, and failures are never cached.

Quick start::

    from respcache import CacheSettings, create_orchestrator, fingerprint

    cache = create_orchestrator(CacheSettings(max_entries=200))
    key = fingerprint("What is quantum computing?", {"domain": "physics"})
    answer = await cache.request(
        key,
        lambda: llm.chat(prompt),
        ttl_s=300,
        tags=["faq", "user:42"],
        priority="high",
    )
    cache.invalidate(tags=["user:42"])
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerPolicy, CircuitState
from .coalescing import InFlightRequest, RequestDeduplicator, UpstreamFactory
from .errors import (
    CacheError,
    CacheMiss,
    Cancelled,
    CircuitOpenError,
    InvalidCacheKeyError,
    UpstreamFailure,
    UpstreamTimeout,
)
from .eviction import (
    EvictionPolicy,
    FIFOEvictionPolicy,
    LRUEvictionPolicy,
    PriorityLRUEvictionPolicy,
    create_eviction_policy,
    list_eviction_policies,
)
from .factory import (
    CacheRuntime,
    create_orchestrator,
    create_orchestrator_from_env,
    create_runtime,
)
from .fingerprint import fingerprint, normalize_message
from .lifecycle import ComponentHandle, DisposerRegistry
from .maintenance import SweepScheduler
from .metrics import (
    CacheMetrics,
    CacheStats,
    CompositeCacheMetrics,
    InMemoryCacheMetrics,
    NoOpCacheMetrics,
    PrometheusCacheMetrics,
)
from .orchestrator import CachedRequestOrchestrator
from .result import Err, ErrorKind, Ok, Result, classify_error
from .settings import CacheSettings
from .store import CacheStore
from .timeouts import with_timeout
from .types import PRIORITY_RANK, CacheEntry, CachePriority
from .warming import (
    CacheWarmer,
    WarmupEntry,
    WarmupSummary,
    WarmupTask,
    load_warmup_manifest,
)

__all__ = [
    "CacheEntry",
    "CachePriority",
    "PRIORITY_RANK",
    "CacheStore",
    "EvictionPolicy",
    "PriorityLRUEvictionPolicy",
    "LRUEvictionPolicy",
    "FIFOEvictionPolicy",
    "create_eviction_policy",
    "list_eviction_policies",
    "RequestDeduplicator",
    "InFlightRequest",
    "UpstreamFactory",
    "CachedRequestOrchestrator",
    "CacheError",
    "CacheMiss",
    "InvalidCacheKeyError",
    "UpstreamFailure",
    "UpstreamTimeout",
    "CircuitOpenError",
    "Cancelled",
    "Ok",
    "Err",
    "Result",
    "ErrorKind",
    "classify_error",
    "CircuitBreaker",
    "CircuitBreakerPolicy",
    "CircuitState",
    "with_timeout",
    "CacheSettings",
    "CacheMetrics",
    "CacheStats",
    "NoOpCacheMetrics",
    "InMemoryCacheMetrics",
    "CompositeCacheMetrics",
    "PrometheusCacheMetrics",
    "fingerprint",
    "normalize_message",
    "SweepScheduler",
    "DisposerRegistry",
    "ComponentHandle",
    "CacheWarmer",
    "WarmupTask",
    "WarmupEntry",
    "WarmupSummary",
    "load_warmup_manifest",
    "CacheRuntime",
    "create_orchestrator",
    "create_orchestrator_from_env",
    "create_runtime",
]
