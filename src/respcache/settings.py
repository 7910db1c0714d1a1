"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache runtime settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .circuit_breaker import CircuitBreakerPolicy
from .eviction import list_eviction_policies
from .types import CachePriority, validate_priority

TTL_STRATEGIES = ("fixed", "priority_weighted")

# Multipliers applied to the base TTL by the priority-weighted strategy.
PRIORITY_TTL_MULTIPLIERS: dict[str, float] = {"low": 0.7, "medium": 1.0, "high": 1.5}

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class CacheSettings:
    """Explicit settings used to build one cache orchestrator."""

    max_entries: int = 500
    default_ttl_s: float = 300.0
    ttl_strategy: str = "priority_weighted"
    eviction_policy: str = "priority_lru"
    sweep_interval_s: float = 60.0

    breaker_enabled: bool = False
    breaker_failure_threshold: int = 5
    breaker_cooldown_s: float = 60.0
    breaker_half_open_max_calls: int = 1
    breaker_success_threshold: int = 1

    warmup_manifest: str | None = None

    def __post_init__(self) -> None:
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if self.default_ttl_s < 0:
            raise ValueError("default_ttl_s must be >= 0")
        if self.sweep_interval_s <= 0:
            raise ValueError("sweep_interval_s must be > 0")
        if self.ttl_strategy not in TTL_STRATEGIES:
            raise ValueError(f"Unknown ttl_strategy '{self.ttl_strategy}'")
        if self.eviction_policy not in list_eviction_policies():
            raise ValueError(f"Unknown eviction_policy '{self.eviction_policy}'")

    @staticmethod
    def from_env() -> "CacheSettings":
        """Load settings from environment variables."""
        return CacheSettings(
            max_entries=int(os.getenv("RESPCACHE_MAX_ENTRIES", "500")),
            default_ttl_s=float(os.getenv("RESPCACHE_DEFAULT_TTL_S", "300")),
            ttl_strategy=os.getenv("RESPCACHE_TTL_STRATEGY", "priority_weighted")
            .strip()
            .lower(),
            eviction_policy=os.getenv("RESPCACHE_EVICTION_POLICY", "priority_lru")
            .strip()
            .lower(),
            sweep_interval_s=float(os.getenv("RESPCACHE_SWEEP_INTERVAL_S", "60")),
            breaker_enabled=_env_bool("RESPCACHE_BREAKER_ENABLED", False),
            breaker_failure_threshold=int(
                os.getenv("RESPCACHE_BREAKER_FAILURE_THRESHOLD", "5")
            ),
            breaker_cooldown_s=float(os.getenv("RESPCACHE_BREAKER_COOLDOWN_S", "60")),
            breaker_half_open_max_calls=int(
                os.getenv("RESPCACHE_BREAKER_HALF_OPEN_MAX_CALLS", "1")
            ),
            breaker_success_threshold=int(
                os.getenv("RESPCACHE_BREAKER_SUCCESS_THRESHOLD", "1")
            ),
            warmup_manifest=os.getenv("RESPCACHE_WARMUP_MANIFEST") or None,
        )

    def ttl_for(self, priority: CachePriority) -> float:
        """Resolve the TTL used when a request does not pass one explicitly."""
        validate_priority(priority)
        if self.ttl_strategy == "fixed":
            return self.default_ttl_s
        return self.default_ttl_s * PRIORITY_TTL_MULTIPLIERS[priority]

    def breaker_policy(self) -> CircuitBreakerPolicy:
        return CircuitBreakerPolicy(
            failure_threshold=self.breaker_failure_threshold,
            cooldown_s=self.breaker_cooldown_s,
            half_open_max_calls=self.breaker_half_open_max_calls,
            success_threshold=self.breaker_success_threshold,
        )
