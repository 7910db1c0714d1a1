"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Session-lifetime key/value store with TTL, tag and priority metadata.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Generic

from .errors import CacheMiss
from .eviction import EvictionPolicy, create_eviction_policy
from .metrics import (
    CACHE_EVICTIONS,
    CACHE_EXPIRATIONS,
    CACHE_INVALIDATIONS,
    CacheMetrics,
    NoOpCacheMetrics,
)
from .types import (
    CacheEntry,
    CachePriority,
    Clock,
    T,
    default_clock,
    validate_key,
    validate_priority,
)

logger = logging.getLogger("respcache.store")

EntryPredicate = Callable[[CacheEntry], bool]


class CacheStore(Generic[T]):
    """
    Bounded in-process cache store.

    Expiry is detected lazily on read and by `sweep_expired`. Inserting a new
    key at capacity sweeps expired rows first, then removes victims chosen by
    the eviction policy until the new entry fits.
    """

    def __init__(
        self,
        *,
        max_entries: int = 500,
        default_ttl_s: float = 300.0,
        eviction_policy: str | EvictionPolicy | None = None,
        clock: Clock | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if default_ttl_s < 0:
            raise ValueError("default_ttl_s must be >= 0")
        self._max_entries = max_entries
        self._default_ttl_s = default_ttl_s
        self._policy = create_eviction_policy(eviction_policy)
        self._clock: Clock = clock or default_clock
        self._metrics: CacheMetrics = metrics or NoOpCacheMetrics()
        self._entries: dict[str, CacheEntry[T]] = {}

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def eviction_policy(self) -> EvictionPolicy:
        return self._policy

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Whether a live entry exists; does not count as a read."""
        if not isinstance(key, str):
            return False
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def entries(self) -> list[CacheEntry[T]]:
        return list(self._entries.values())

    def lookup(self, key: str) -> CacheEntry[T]:
        """
        Return the live entry for `key` and record the read.

        Raises:
            CacheMiss: When the key is absent or its entry has expired.
        """
        validate_key(key)
        entry = self._entries.get(key)
        if entry is None:
            raise CacheMiss(key)
        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            self._metrics.incr(CACHE_EXPIRATIONS)
            logger.debug("Cache entry expired on read (key=%s)", key)
            raise CacheMiss(key)
        entry.touch(now)
        return entry

    def get(self, key: str) -> CacheEntry[T] | None:
        """Return the live entry for `key`, or None on miss."""
        try:
            return self.lookup(key)
        except CacheMiss:
            return None

    def set(
        self,
        key: str,
        value: T,
        *,
        ttl_s: float | None = None,
        tags: Iterable[str] = (),
        priority: CachePriority = "medium",
    ) -> CacheEntry[T]:
        """Insert or replace the entry for `key`."""
        validate_key(key)
        validate_priority(priority)
        if isinstance(tags, str):
            tags = (tags,)
        ttl = self._default_ttl_s if ttl_s is None else float(ttl_s)
        if ttl < 0:
            raise ValueError("ttl_s must be >= 0")

        if key not in self._entries:
            self._make_room()

        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=value,
            created_at_s=now,
            ttl_s=ttl,
            tags=frozenset(tags),
            priority=priority,
            access_count=0,
            last_accessed_at_s=now,
        )
        self._entries[key] = entry
        return entry

    def delete(self, key: str) -> bool:
        validate_key(key)
        return self._entries.pop(key, None) is not None

    def invalidate(
        self,
        *,
        keys: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
        predicate: EntryPredicate | None = None,
    ) -> int:
        """
        Remove entries matching any of the given selectors.

        Args:
            keys: Explicit keys to drop.
            tags: Drop every entry carrying at least one of these tags.
            predicate: Drop every entry for which this returns True.

        Returns:
            Number of entries removed.
        """
        doomed: set[str] = set()
        if keys is not None:
            for key in keys:
                if validate_key(key) in self._entries:
                    doomed.add(key)
        if tags is not None:
            wanted = frozenset(tags)
            doomed.update(
                key for key, entry in self._entries.items() if entry.tags & wanted
            )
        if predicate is not None:
            doomed.update(
                key for key, entry in self._entries.items() if predicate(entry)
            )

        for key in doomed:
            del self._entries[key]
        if doomed:
            self._metrics.incr(CACHE_INVALIDATIONS, len(doomed))
            logger.debug("Invalidated %d cache entries", len(doomed))
        return len(doomed)

    def sweep_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._metrics.incr(CACHE_EXPIRATIONS, len(expired))
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def _make_room(self) -> None:
        if not self._policy.should_evict(len(self._entries), self._max_entries):
            return
        self.sweep_expired()

        while self._entries and self._policy.should_evict(
            len(self._entries), self._max_entries
        ):
            overflow = len(self._entries) - self._max_entries + 1
            victims = self._policy.select_victims(self._entries.values())
            removed = 0
            for key in victims[: max(1, overflow)]:
                if self._entries.pop(key, None) is not None:
                    removed += 1
            if removed == 0:
                raise RuntimeError(
                    f"Eviction policy '{self._policy.policy_id}' selected no "
                    "removable victims while the store is at capacity"
                )
            self._metrics.incr(CACHE_EVICTIONS, removed)
            logger.warning(
                "Evicted %d cache entries (policy=%s, size=%d, max=%d)",
                removed,
                self._policy.policy_id,
                len(self._entries),
                self._max_entries,
            )
