"""
Payment endpoints
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .dependencies import TransactionSystem, get_transaction_system
from .schemas import PaymentModel


router = APIRouter()


@router.post("", response_model=PaymentModel)
def make_payment(
    from_account_id: str = Query(..., alias="fromAccountId"),
    to_account_id: str = Query(..., alias="toAccountId"),
    amount: Decimal = Query(...),
    system: TransactionSystem = Depends(get_transaction_system)
):
    """Transfer money between two accounts"""
    payment = system.ledger.make_payment(from_account_id, to_account_id, amount).unwrap()
    return PaymentModel.from_payment(payment)


@router.get("", response_model=List[PaymentModel])
def list_payments(
    account_id: Optional[str] = Query(None, alias="accountId"),
    system: TransactionSystem = Depends(get_transaction_system)
):
    """List payments, optionally only those involving one account"""
    return [PaymentModel.from_payment(p) for p in system.ledger.list_payments(account_id)]


@router.get("/{payment_id}", response_model=PaymentModel)
def get_payment(payment_id: int, system: TransactionSystem = Depends(get_transaction_system)):
    """Get payment details"""
    payment = system.ledger.get_payment(payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return PaymentModel.from_payment(payment)
