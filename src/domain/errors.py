"""Typed outcomes for engine operations.

Engine operations never raise for expected failures. The record store signals
an unreachable backend with :class:`StoreUnavailable`; the engines catch it at
their boundary and hand back an :class:`Outcome` that carries the error kind
and a human-readable reason. Callers branch on ``outcome.ok``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories reported to callers."""

    STORE_UNAVAILABLE = "store_unavailable"
    INVALID_REFERENCE = "invalid_reference"
    BACKUP_NOT_FOUND = "backup_not_found"
    PARTIAL_RECALCULATION_FAILURE = "partial_recalculation_failure"


class StoreUnavailable(Exception):
    """Raised by record-store adapters when a lookup or update fails."""


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success value or failure kind/reason, with optional partial value."""

    value: T | None = None
    error: ErrorKind | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, reason: str, *, value: T | None = None) -> Outcome[T]:
        return cls(value=value, error=error, reason=reason)

    def unwrap(self) -> T:
        """Return the value of a successful outcome or raise ``ValueError``."""
        if self.error is not None:
            raise ValueError(f"{self.error.value}: {self.reason}")
        return self.value  # type: ignore[return-value]


__all__ = ["ErrorKind", "Outcome", "StoreUnavailable"]
