"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache warming: preload frequently requested responses before users ask.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .coalescing import UpstreamFactory
from .orchestrator import CachedRequestOrchestrator
from .types import CachePriority, validate_key

logger = logging.getLogger("respcache.warming")


@dataclass(frozen=True, slots=True)
class WarmupTask:
    """One key to preload and the loader that produces its value."""

    key: str
    loader: UpstreamFactory[Any]
    ttl_s: float | None = None
    tags: tuple[str, ...] = ()
    priority: CachePriority = "high"


@dataclass(slots=True)
class WarmupSummary:
    """Outcome counts for one warm run."""

    planned: int = 0
    warmed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class WarmupEntry(BaseModel):
    """Static manifest row: a precomputed value stored under `key`."""

    model_config = ConfigDict(extra="forbid")

    key: str = Field(min_length=1)
    value: Any
    ttl_s: float | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)
    priority: Literal["low", "medium", "high"] = "high"

    def as_task(self) -> WarmupTask:
        value = self.value

        def _load() -> Any:
            return value

        return WarmupTask(
            key=self.key,
            loader=_load,
            ttl_s=self.ttl_s,
            tags=tuple(self.tags),
            priority=self.priority,
        )


_MANIFEST = TypeAdapter(list[WarmupEntry])


def load_warmup_manifest(path: str | Path) -> list[WarmupEntry]:
    """
    Read a JSON list of warmup entries.

    Raises:
        FileNotFoundError: When the manifest does not exist.
        pydantic.ValidationError: When a row is malformed.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return _MANIFEST.validate_python(raw)


class CacheWarmer:
    """Preload entries through the orchestrator so coalescing still applies."""

    def __init__(self, orchestrator: CachedRequestOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def warm(self, tasks: Iterable[WarmupTask]) -> WarmupSummary:
        """
        Load every task whose key is not already cached.

        Loaders run concurrently; one failing loader does not stop the rest.
        """
        plan = list(tasks)
        summary = WarmupSummary(planned=len(plan))
        pending: list[WarmupTask] = []
        for task in plan:
            validate_key(task.key)
            if self._orchestrator.is_cached(task.key):
                summary.skipped += 1
            else:
                pending.append(task)

        results = await asyncio.gather(
            *(
                self._orchestrator.request(
                    task.key,
                    task.loader,
                    ttl_s=task.ttl_s,
                    tags=task.tags,
                    priority=task.priority,
                )
                for task in pending
            ),
            return_exceptions=True,
        )
        for task, outcome in zip(pending, results):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Cache warm task failed (key=%s, error=%s)", task.key, outcome
                )
                summary.errors.append(f"{task.key}: {outcome}")
                continue
            summary.warmed += 1

        logger.info(
            "Cache warm finished (planned=%d, warmed=%d, skipped=%d, errors=%d)",
            summary.planned,
            summary.warmed,
            summary.skipped,
            len(summary.errors),
        )
        return summary

    async def warm_from_manifest(self, path: str | Path) -> WarmupSummary:
        entries = load_warmup_manifest(path)
        return await self.warm(entry.as_task() for entry in entries)
