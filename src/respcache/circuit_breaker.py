"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: circuit_breaker.py.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from .errors import CircuitOpenError
from .types import Clock, default_clock

CircuitState = Literal["closed", "open", "half_open"]

logger = logging.getLogger("respcache.circuit_breaker")


@dataclass(frozen=True, slots=True)
class CircuitBreakerPolicy:
    """Consecutive failure policy with half-open probes."""

    failure_threshold: int = 5
    cooldown_s: float = 60.0
    half_open_max_calls: int = 1
    success_threshold: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.cooldown_s < 0:
            raise ValueError("cooldown_s must be >= 0")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")


@dataclass(slots=True)
class _State:
    """Data type for state."""

    failures: int = 0
    opened_at_s: float | None = None
    half_open_calls: int = 0
    half_open_successes: int = 0


class CircuitBreaker:
    """Per-upstream breaker with half-open probe support."""

    def __init__(
        self,
        policy: CircuitBreakerPolicy | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._policy = policy or CircuitBreakerPolicy()
        self._clock: Clock = clock or default_clock
        self._rows: dict[str, _State] = {}

    @property
    def policy(self) -> CircuitBreakerPolicy:
        return self._policy

    def state(self, upstream: str) -> CircuitState:
        row = self._rows.get(upstream)
        if row is None or row.opened_at_s is None:
            return "closed"
        if self._clock() - row.opened_at_s >= self._policy.cooldown_s:
            return "half_open"
        return "open"

    def ensure_available(self, upstream: str) -> None:
        """
        Admit one call for `upstream` or refuse it.

        Raises:
            CircuitOpenError: While open, or half-open with the probe budget spent.
        """
        row = self._rows.setdefault(upstream, _State())
        if row.opened_at_s is None:
            return
        age = self._clock() - row.opened_at_s
        if age >= self._policy.cooldown_s:
            if row.half_open_calls < self._policy.half_open_max_calls:
                row.half_open_calls += 1
                return
        raise CircuitOpenError(upstream)

    def record_success(self, upstream: str) -> None:
        row = self._rows.get(upstream)
        if row is None:
            return
        if row.opened_at_s is None:
            row.failures = 0
            return
        row.half_open_successes += 1
        if row.half_open_successes >= self._policy.success_threshold:
            logger.info("Circuit closed (upstream=%s)", upstream)
            self._rows[upstream] = _State()
        else:
            # Free the probe slot for the next half-open call.
            row.half_open_calls = max(0, row.half_open_calls - 1)

    def record_failure(self, upstream: str) -> None:
        row = self._rows.setdefault(upstream, _State())
        row.failures += 1
        if row.opened_at_s is not None or row.failures >= self._policy.failure_threshold:
            if row.opened_at_s is None:
                logger.warning(
                    "Circuit opened (upstream=%s, failures=%d)", upstream, row.failures
                )
            row.opened_at_s = self._clock()
            row.half_open_calls = 0
            row.half_open_successes = 0

    def release_probe(self, upstream: str) -> None:
        """Return a half-open probe slot taken by a call that was cancelled."""
        row = self._rows.get(upstream)
        if row is not None and row.half_open_calls > 0:
            row.half_open_calls -= 1

    def reset(self, upstream: str | None = None) -> None:
        if upstream is None:
            self._rows.clear()
        else:
            self._rows.pop(upstream, None)
