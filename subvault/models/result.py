"""
Result Types

DESIGN DECISION: Domain operations report failure as a value, not by raising.
Every repository, scheduler and backup operation returns either
Success(value) or Failure(error). The caller decides what to show; nothing
crashes the caller because a reminder could not be scheduled or a file
was corrupt.

Exceptions are still used INSIDE the core for unexpected faults. They are
caught at the operation boundary and wrapped in a Failure.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class InvalidArgumentError(ValueError):
    """
    A caller passed something unusable (blank id, non-positive window,
    malformed decimal string).

    Raised synchronously, before any I/O happens.
    """
    pass


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed; carries its value."""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    @property
    def error(self) -> None:
        return None

    def unwrap(self) -> T:
        return self.value

    def value_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Operation failed; carries the cause."""

    error: Exception

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    @property
    def value(self) -> None:
        return None

    def unwrap(self):
        """Re-raise the underlying error."""
        raise self.error

    def value_or(self, default: Any) -> Any:
        return default


Result = Union[Success[T], Failure]


@dataclass(frozen=True)
class BatchOutcome:
    """
    Summary of a batch operation that keeps going past individual failures.

    A batch is reported as Success(BatchOutcome) unless every item failed.
    """

    succeeded: int
    failed: int = 0
    last_error: Optional[Exception] = None

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


class BatchCollector:
    """Accumulates per-item results of a batch into a single Result."""

    def __init__(self):
        self._succeeded = 0
        self._failed = 0
        self._last_error: Optional[Exception] = None

    def add(self, result: "Result") -> None:
        if result.is_success:
            self._succeeded += 1
        else:
            self._failed += 1
            self._last_error = result.error

    def result(self) -> "Result[BatchOutcome]":
        if self._succeeded == 0 and self._last_error is not None:
            return Failure(self._last_error)
        return Success(BatchOutcome(
            succeeded=self._succeeded,
            failed=self._failed,
            last_error=self._last_error,
        ))
