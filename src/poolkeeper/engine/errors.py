"""Module defining the pool engine error taxonomy and outcome values.

Engine operations never raise these errors across their public boundary. Internal
helpers raise them, and the `engine_operation` decorator folds them into an
`Outcome` so that callers can branch on `outcome.ok` or call `outcome.unwrap()`.
"""

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any
from typing import Callable
from typing import ClassVar
from typing import Generic
from typing import TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Kinds of failure an engine operation can report."""

    invalid_input = "InvalidInput"
    pool_paused = "PoolPaused"
    pool_drained = "PoolDrained"
    slippage_exceeded = "SlippageExceeded"
    insufficient_lp = "InsufficientLP"
    corrupt_pool_state = "CorruptPoolState"
    stale_snapshot = "StaleSnapshot"
    unsupported_datum_version = "UnsupportedDatumVersion"
    min_ada_violation = "MinAdaViolation"


class PoolEngineError(Exception):
    """Base class for all pool engine errors."""

    kind: ClassVar[ErrorKind]
    retryable: ClassVar[bool] = False


class InvalidInputError(PoolEngineError):
    """Error raised when an amount or fee parameter is non-positive or out of range."""

    kind = ErrorKind.invalid_input


class PoolPausedError(PoolEngineError):
    """Error raised when governance has paused the pool."""

    kind = ErrorKind.pool_paused
    retryable = True


class PoolDrainedError(PoolEngineError):
    """Error raised when a result would leave a reserve at zero or below."""

    kind = ErrorKind.pool_drained


class SlippageExceededError(PoolEngineError):
    """Error raised when a quote does not meet the caller's minimum output."""

    kind = ErrorKind.slippage_exceeded
    retryable = True


class InsufficientLPError(PoolEngineError):
    """Error raised when more LP tokens are burned than exist."""

    kind = ErrorKind.insufficient_lp


class CorruptPoolStateError(PoolEngineError):
    """Error raised when a pool datum violates an internal invariant.

    This is fatal for the pool it concerns: processing of that pool must halt.
    """

    kind = ErrorKind.corrupt_pool_state


class StaleSnapshotError(PoolEngineError):
    """Error raised when a snapshot is older than the stored state."""

    kind = ErrorKind.stale_snapshot


class UnsupportedDatumVersionError(PoolEngineError):
    """Error raised when a datum is newer than the engine understands."""

    kind = ErrorKind.unsupported_datum_version


class MinAdaViolationError(PoolEngineError):
    """Error raised when a pool output would hold less than its minimum ADA."""

    kind = ErrorKind.min_ada_violation


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """The result of an engine operation: either a value or an error."""

    value: T | None = None
    error: PoolEngineError | None = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PoolEngineError) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """True when the operation succeeded."""
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        """The error kind, or None on success."""
        if self.error is None:
            return None
        return self.error.kind

    def unwrap(self) -> T:
        """Return the value, raising the stored error if the operation failed."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def engine_operation(func: Callable[..., T]) -> Callable[..., Outcome[T]]:
    """Wrap a raising engine function so that it returns an `Outcome` instead."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Outcome[T]:
        try:
            return Outcome.success(func(*args, **kwargs))
        except PoolEngineError as e:
            return Outcome.failure(e)

    return wrapper
