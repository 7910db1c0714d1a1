"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Periodic expiry sweep driven by an explicit scheduler tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

logger = logging.getLogger("respcache.maintenance")


class Sweepable(Protocol):
    def sweep_expired(self) -> int: ...


class SweepScheduler:
    """
    Run `sweep_expired` on a target every `interval_s` seconds.

    `tick()` performs one sweep synchronously so callers (and tests) can drive
    the schedule themselves. `start()` runs ticks on a background task until
    `stop()` is called.
    """

    def __init__(self, target: Sweepable, *, interval_s: float = 60.0) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._target = target
        self._interval_s = interval_s
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._ticks = 0
        self._swept_total = 0

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def swept_total(self) -> int:
        return self._swept_total

    def is_running(self) -> bool:
        return self._running

    def tick(self) -> int:
        """Sweep once and return how many entries were removed."""
        removed = self._target.sweep_expired()
        self._ticks += 1
        self._swept_total += removed
        return removed

    async def start(self) -> None:
        if self._running:
            raise RuntimeError("SweepScheduler is already running")
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("SweepScheduler started (interval=%.1fs)", self._interval_s)

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info(
            "SweepScheduler stopped (ticks=%d, swept=%d)",
            self._ticks,
            self._swept_total,
        )

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval_s)
            if not self._running:
                break
            try:
                self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("SweepScheduler tick failed")
