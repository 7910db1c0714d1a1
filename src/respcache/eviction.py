"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Eviction policies that pick victims when the cache store reaches capacity.

Policies are pure functions of the entries handed to them and keep no state.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from .types import PRIORITY_RANK, CacheEntry


class EvictionPolicy(Protocol):
    """Protocol implemented by eviction policies used by `CacheStore`."""

    policy_id: str

    def should_evict(self, current_size: int, max_size: int) -> bool: ...

    def select_victims(self, entries: Iterable[CacheEntry[Any]]) -> list[str]: ...


class _CapacityPolicy:
    policy_id = "base"

    def should_evict(self, current_size: int, max_size: int) -> bool:
        return current_size >= max_size

    def _sort_key(self, entry: CacheEntry[Any]) -> tuple:
        raise NotImplementedError

    def select_victims(self, entries: Iterable[CacheEntry[Any]]) -> list[str]:
        # The key is the final tie-breaker so the order is total.
        ordered = sorted(entries, key=lambda e: (*self._sort_key(e), e.key))
        return [entry.key for entry in ordered]


class PriorityLRUEvictionPolicy(_CapacityPolicy):
    """Lowest priority first, then least recently accessed, then oldest."""

    policy_id = "priority_lru"

    def _sort_key(self, entry: CacheEntry[Any]) -> tuple:
        return (
            PRIORITY_RANK[entry.priority],
            entry.last_accessed_at_s,
            entry.created_at_s,
        )


class LRUEvictionPolicy(_CapacityPolicy):
    """Least recently accessed first, priority ignored."""

    policy_id = "lru"

    def _sort_key(self, entry: CacheEntry[Any]) -> tuple:
        return (entry.last_accessed_at_s, entry.created_at_s)


class FIFOEvictionPolicy(_CapacityPolicy):
    """Oldest insertion first."""

    policy_id = "fifo"

    def _sort_key(self, entry: CacheEntry[Any]) -> tuple:
        return (entry.created_at_s,)


_POLICIES: dict[str, type[_CapacityPolicy]] = {
    PriorityLRUEvictionPolicy.policy_id: PriorityLRUEvictionPolicy,
    LRUEvictionPolicy.policy_id: LRUEvictionPolicy,
    FIFOEvictionPolicy.policy_id: FIFOEvictionPolicy,
}


def create_eviction_policy(policy: str | EvictionPolicy | None = None) -> EvictionPolicy:
    """Resolve eviction policy instance from id/instance/default."""
    if policy is None:
        return PriorityLRUEvictionPolicy()
    if not isinstance(policy, str):
        return policy

    key = policy.strip().lower().replace("-", "_")
    policy_cls = _POLICIES.get(key)
    if policy_cls is None:
        raise ValueError(f"Unknown eviction policy '{policy}'")
    return policy_cls()


def list_eviction_policies() -> list[str]:
    return sorted(_POLICIES.keys())
