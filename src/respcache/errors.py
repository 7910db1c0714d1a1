"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy for the cache and coalescing layer.
"""

from __future__ import annotations


class CacheError(RuntimeError):
    """Base class for errors raised by respcache."""


class CacheMiss(CacheError, LookupError):
    """Internal signal raised by `CacheStore.lookup` when no live entry exists."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No live cache entry for key '{key}'")
        self.key = key


class InvalidCacheKeyError(ValueError):
    """Raised when a key is not a non-empty string."""


class UpstreamFailure(CacheError):
    """Upstream call rejected. Propagated to every waiter, never cached."""


class UpstreamTimeout(UpstreamFailure):
    """Upstream call exceeded the deadline enforced by its factory."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Upstream call timed out after {timeout_s:.3f}s")
        self.timeout_s = timeout_s


class CircuitOpenError(UpstreamFailure):
    """Circuit breaker refused to dispatch an upstream call."""

    def __init__(self, upstream: str) -> None:
        super().__init__(f"Circuit open for upstream '{upstream}'")
        self.upstream = upstream


class Cancelled(CacheError):
    """Delivered to all waiters of a key when its in-flight request is cancelled."""

    def __init__(self, key: str) -> None:
        super().__init__(f"In-flight request cancelled for key '{key}'")
        self.key = key
