"""
Operation Results

Ledger and directory operations report expected failures as values, not
exceptions: a Result is either ok (carries the value) or err (carries a
LedgerError with its ErrorKind). Callers branch on the kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(Enum):
    """Expected, recoverable failure kinds"""
    INVALID_ACCOUNT = "invalid_account"          # Empty id, or from == to
    ACCOUNT_NOT_FOUND = "account_not_found"
    INSUFFICIENT_FUNDS = "insufficient_funds"    # Would leave a negative balance
    INVALID_AMOUNT = "invalid_amount"            # Not a finite, usable decimal


@dataclass(frozen=True)
class LedgerError:
    kind: ErrorKind
    message: str


class LedgerOperationError(Exception):
    """Raised by Result.unwrap() on an err result"""

    def __init__(self, error: LedgerError):
        super().__init__(error.message)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Tagged success/failure value.

    Exactly one of value/error is meaningful; bool(result) is True only
    for ok results.
    """
    value: Optional[T] = None
    error: Optional[LedgerError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def err(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error=LedgerError(kind, message))

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise LedgerOperationError(self.error)
        return self.value

    def __bool__(self) -> bool:
        return self.is_ok
