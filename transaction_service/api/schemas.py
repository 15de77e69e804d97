"""
Pydantic schemas for API requests and responses

JSON uses camelCase field names; amounts and balances are decimal strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import Account, Payment


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Account schemas
class CreateAccountRequest(CamelModel):
    id: Optional[str] = Field(None, description="Account id; generated when omitted")
    owner: str
    balance: Decimal = Field(Decimal("0"), description="Opening balance")
    currency: Optional[str] = Field(None, description="Currency label, informational only")


class UpdateAccountRequest(CamelModel):
    owner: str
    balance: Decimal


class DepositRequest(CamelModel):
    to_account_id: Optional[str] = Field(
        None, description="Account to credit; the path account is debited. Omit for a plain deposit."
    )
    amount: Decimal


class WithdrawRequest(CamelModel):
    amount: Decimal


class AccountModel(CamelModel):
    id: str
    owner: str
    balance: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> 'AccountModel':
        return cls(
            id=account.id,
            owner=account.owner,
            balance=account.balance,
            currency=account.currency,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


# Payment schemas
class PaymentModel(CamelModel):
    id: int
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    amount: Decimal
    direction: str
    created_at: datetime

    @classmethod
    def from_payment(cls, payment: Payment) -> 'PaymentModel':
        return cls(
            id=payment.id,
            from_account=payment.from_account,
            to_account=payment.to_account,
            amount=payment.amount,
            direction=payment.direction.value,
            created_at=payment.created_at,
        )


class ErrorResponse(BaseModel):
    detail: str
    error: str
