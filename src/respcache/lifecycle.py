"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Deterministic cleanup registry.

Components register disposer callbacks under an explicit handle and the owner
calls `dispose(handle)` at teardown. Nothing depends on garbage collection.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger("respcache.lifecycle")

Disposer = Callable[[], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class ComponentHandle:
    """Opaque identity of one registered component."""

    id: int
    name: str


class DisposerRegistry:
    """Arena of disposers keyed by component handle."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._disposers: dict[ComponentHandle, list[Disposer]] = {}

    def __len__(self) -> int:
        return len(self._disposers)

    def new_handle(self, name: str) -> ComponentHandle:
        handle = ComponentHandle(id=next(self._ids), name=name)
        self._disposers[handle] = []
        return handle

    def is_registered(self, handle: ComponentHandle) -> bool:
        return handle in self._disposers

    def register(self, handle: ComponentHandle, disposer: Disposer) -> None:
        rows = self._disposers.get(handle)
        if rows is None:
            raise KeyError(
                f"Unknown or disposed component handle: {handle.name}#{handle.id}"
            )
        rows.append(disposer)

    async def dispose(self, handle: ComponentHandle) -> int:
        """
        Run the disposers of `handle` in reverse registration order.

        Every disposer runs even if an earlier one fails; the first failure is
        re-raised afterwards. Disposing an unknown handle is a no-op.

        Returns:
            Number of disposers that ran.
        """
        rows = self._disposers.pop(handle, None)
        if rows is None:
            return 0

        first_error: Exception | None = None
        for disposer in reversed(rows):
            try:
                out = disposer()
                if inspect.isawaitable(out):
                    await out
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "Disposer failed (component=%s#%d)", handle.name, handle.id
                )
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return len(rows)

    async def dispose_all(self) -> int:
        """Dispose every handle, newest first."""
        total = 0
        first_error: Exception | None = None
        for handle in reversed(list(self._disposers.keys())):
            try:
                total += await self.dispose(handle)
            except Exception as exc:  # noqa: BLE001
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return total
