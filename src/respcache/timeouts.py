"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: timeouts.py.

Deadlines belong to the upstream caller, so they wrap the factory handed to
the orchestrator rather than living inside the cache layer.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .coalescing import UpstreamFactory, invoke_factory
from .errors import UpstreamTimeout

T = TypeVar("T")


async def await_with_timeout(awaitable: Awaitable[T], timeout_s: float | None) -> T:
    """Await value with optional timeout, raising `UpstreamTimeout` on expiry."""
    if timeout_s is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise UpstreamTimeout(timeout_s) from exc


def with_timeout(
    factory: UpstreamFactory[T], timeout_s: float | None
) -> Callable[[], Awaitable[T]]:
    """Wrap an upstream factory so its call rejects after `timeout_s` seconds."""
    if timeout_s is not None and timeout_s <= 0:
        raise ValueError("timeout_s must be > 0")

    async def _call() -> T:
        return await await_with_timeout(invoke_factory(factory), timeout_s)

    return _call
