"""
Account and Payment Records

Accounts hold an exact Decimal balance that may never be negative.
Payments are frozen once created: the ledger only ever appends them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import (
    Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow,
    ROUND_HALF_UP, localcontext
)
from enum import Enum
from typing import Any, Dict, Optional, Union

from .storage import StorageRecord


# Amounts and balances carry at most this many digits after the point
MAX_DECIMAL_PLACES = 8

MONEY_CONTEXT = Context(
    prec=28,
    rounding=ROUND_HALF_UP,
    traps=[Inexact, InvalidOperation, Overflow, DivisionByZero]
)


def money_context():
    """Arithmetic context in which any rounded balance result raises Inexact"""
    return localcontext(MONEY_CONTEXT)


def to_decimal(value: Union[Decimal, int, str, None]) -> Optional[Decimal]:
    """Parse an amount; None unless it is a finite decimal with at most MAX_DECIMAL_PLACES places"""
    if value is None or isinstance(value, (bool, float)):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    if amount.as_tuple().exponent < -MAX_DECIMAL_PLACES:
        return None
    return amount


class PaymentDirection(Enum):
    """Direction of a payment as seen from the primary account"""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass
class Account(StorageRecord):
    """Balance-holding account. The id never changes after creation."""
    owner: str
    balance: Decimal
    currency: str = "USD"

    def __post_init__(self):
        balance = to_decimal(self.balance)
        if balance is None:
            raise ValueError(f"Account balance must be a finite decimal, got {self.balance!r}")
        if balance < 0:
            raise ValueError("Account balance cannot be negative")
        self.balance = balance

    def has_funds(self, amount: Decimal) -> bool:
        return self.balance >= amount


@dataclass(frozen=True)
class Payment:
    """
    Immutable record of one balance-affecting event.

    from_account is None for a deposit with no source account; to_account
    is None when nothing was credited. The id comes from the payment
    store's sequence and is never reused.
    """
    id: int
    amount: Decimal
    direction: PaymentDirection
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, "created_at", datetime.now(timezone.utc))

    def involves(self, account_id: str) -> bool:
        return account_id in (self.from_account, self.to_account)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_account": self.from_account,
            "to_account": self.to_account,
            "amount": str(self.amount),
            "direction": self.direction.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        return cls(
            id=int(data["id"]),
            amount=Decimal(data["amount"]),
            direction=PaymentDirection(data["direction"]),
            from_account=data.get("from_account"),
            to_account=data.get("to_account"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
