"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Tagged result values used where callers prefer branching over try/except.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

from .errors import Cancelled, CircuitOpenError, UpstreamTimeout

T = TypeVar("T")

ErrorKind = Literal["cancelled", "timeout", "circuit_open", "upstream"]


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err:
    """Failed outcome with a coarse kind for branching and the original error."""

    kind: ErrorKind
    message: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        if self.error is not None:
            raise self.error
        raise RuntimeError(self.message)


Result = Union[Ok[T], Err]


def classify_error(error: BaseException) -> ErrorKind:
    if isinstance(error, (Cancelled, asyncio.CancelledError)):
        return "cancelled"
    if isinstance(error, (UpstreamTimeout, asyncio.TimeoutError)):
        return "timeout"
    if isinstance(error, CircuitOpenError):
        return "circuit_open"
    return "upstream"


def err_from_exception(error: BaseException) -> Err:
    return Err(
        kind=classify_error(error),
        message=str(error) or type(error).__name__,
        error=error,
    )
