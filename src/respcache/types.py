"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Core cache types shared by store, eviction and orchestrator modules.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from .errors import InvalidCacheKeyError

T = TypeVar("T")

CachePriority = Literal["low", "medium", "high"]

PRIORITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2}

# Monotonic time source in seconds.
Clock = Callable[[], float]


def default_clock() -> float:
    """Return monotonic seconds used for TTL and LRU bookkeeping."""
    return time.monotonic()


def validate_key(key: Any) -> str:
    """
    Fail fast on malformed keys.

    Raises:
        InvalidCacheKeyError: When `key` is not a string or is blank.
    """
    if not isinstance(key, str):
        raise InvalidCacheKeyError(
            f"Cache key must be a string, got {type(key).__name__}"
        )
    if not key.strip():
        raise InvalidCacheKeyError("Cache key must be non-empty")
    return key


def validate_priority(priority: str) -> CachePriority:
    if priority not in PRIORITY_RANK:
        raise ValueError(
            f"Unknown cache priority '{priority}' (expected low, medium or high)"
        )
    return priority  # type: ignore[return-value]


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """
    One cached value with expiry, tag and access metadata.

    Attributes:
        key: Normalized request fingerprint.
        value: Opaque cached payload.
        created_at_s: Clock reading at insertion.
        ttl_s: Lifetime in seconds; expired once `now > created_at_s + ttl_s`.
        tags: Handles used for bulk invalidation.
        priority: Eviction hint; lower priorities are evicted first.
        access_count: Number of reads served by this entry.
        last_accessed_at_s: Clock reading of the latest read (or insertion).
    """

    key: str
    value: T
    created_at_s: float
    ttl_s: float
    tags: frozenset[str] = field(default_factory=frozenset)
    priority: CachePriority = "medium"
    access_count: int = 0
    last_accessed_at_s: float = 0.0

    @property
    def expires_at_s(self) -> float:
        return self.created_at_s + self.ttl_s

    def is_expired(self, now_s: float) -> bool:
        return now_s > self.expires_at_s

    def touch(self, now_s: float) -> None:
        """Record one read."""
        self.access_count += 1
        self.last_accessed_at_s = now_s
