"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: coalescing.py.

At most one upstream call is outstanding per key. Every caller that submits
the same key while that call runs joins it as a waiter and observes the same
result or the same exception object.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .errors import Cancelled
from .metrics import (
    CACHE_CANCELLED,
    CACHE_COALESCED,
    CACHE_UPSTREAM_CALLS,
    CACHE_UPSTREAM_FAILURES,
    CacheMetrics,
    NoOpCacheMetrics,
)
from .types import validate_key

T = TypeVar("T")

UpstreamFactory = Callable[[], Awaitable[T] | T]

logger = logging.getLogger("respcache.coalescing")


async def invoke_factory(factory: UpstreamFactory[T]) -> T:
    """Call `factory` and await its result when it returns an awaitable."""
    out = factory()
    if inspect.isawaitable(out):
        return await out
    return out


@dataclass(slots=True)
class InFlightRequest(Generic[T]):
    """The single pending upstream computation for one key."""

    key: str
    task: asyncio.Task[T]
    waiters: list[asyncio.Future[T]] = field(default_factory=list)


class RequestDeduplicator:
    """Coalesce concurrent identical requests into one upstream call."""

    def __init__(self, *, metrics: CacheMetrics | None = None) -> None:
        self._inflight: dict[str, InFlightRequest[Any]] = {}
        self._metrics: CacheMetrics = metrics or NoOpCacheMetrics()

    def __len__(self) -> int:
        return len(self._inflight)

    def is_pending(self, key: str) -> bool:
        return validate_key(key) in self._inflight

    def pending_keys(self) -> list[str]:
        return list(self._inflight.keys())

    async def submit(self, key: str, factory: UpstreamFactory[T]) -> T:
        """
        Join the in-flight request for `key` or dispatch `factory` as the one.

        Raises:
            Cancelled: When `cancel(key)` runs before the call settles.
            Exception: Whatever the upstream call raised, unchanged.
        """
        validate_key(key)
        request = self._inflight.get(key)
        if request is None:
            request = self._dispatch(key, factory)
        else:
            self._metrics.incr(CACHE_COALESCED)
            logger.debug(
                "Joined in-flight request (key=%s, waiters=%d)",
                key,
                len(request.waiters) + 1,
            )

        waiter: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        request.waiters.append(waiter)
        return await waiter

    def cancel(self, key: str) -> bool:
        """Cancel the upstream call for `key` and reject all of its waiters."""
        validate_key(key)
        request = self._inflight.pop(key, None)
        if request is None:
            return False

        request.task.cancel()
        error = Cancelled(key)
        for waiter in request.waiters:
            if not waiter.done():
                waiter.set_exception(error)
        self._metrics.incr(CACHE_CANCELLED)
        logger.debug(
            "Cancelled in-flight request (key=%s, waiters=%d)",
            key,
            len(request.waiters),
        )
        return True

    def cancel_all(self) -> int:
        keys = list(self._inflight.keys())
        return sum(1 for key in keys if self.cancel(key))

    def _dispatch(self, key: str, factory: UpstreamFactory[T]) -> InFlightRequest[T]:
        request: InFlightRequest[T] | None = None

        async def _run() -> T:
            try:
                return await invoke_factory(factory)
            finally:
                # Drop the record in the same step the call settles, before
                # any ready caller can join it.
                self._release(key, request)

        task: asyncio.Task[T] = asyncio.ensure_future(_run())
        request = InFlightRequest(key=key, task=task)
        self._inflight[key] = request
        self._metrics.incr(CACHE_UPSTREAM_CALLS)
        logger.debug("Dispatched upstream call (key=%s)", key)
        task.add_done_callback(lambda done: self._settle(request, done))
        return request

    def _release(self, key: str, request: InFlightRequest[Any] | None) -> None:
        if request is not None and self._inflight.get(key) is request:
            del self._inflight[key]

    def _settle(self, request: InFlightRequest[Any], task: asyncio.Task[Any]) -> None:
        # A task cancelled before its first step never reaches `_run`'s finally.
        self._release(request.key, request)

        if task.cancelled():
            error: BaseException | None = Cancelled(request.key)
        else:
            error = task.exception()
            if error is not None and not isinstance(error, Cancelled):
                self._metrics.incr(CACHE_UPSTREAM_FAILURES)
                logger.debug(
                    "Upstream call failed (key=%s, error=%s)",
                    request.key,
                    type(error).__name__,
                )

        for waiter in request.waiters:
            if waiter.done():
                continue
            if error is None:
                waiter.set_result(task.result())
            else:
                waiter.set_exception(error)
