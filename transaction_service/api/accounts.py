"""
Account management endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from .dependencies import TransactionSystem, get_transaction_system
from .schemas import (
    AccountModel, CreateAccountRequest, DepositRequest, PaymentModel,
    UpdateAccountRequest, WithdrawRequest
)


router = APIRouter()


@router.get("", response_model=List[AccountModel])
def list_accounts(system: TransactionSystem = Depends(get_transaction_system)):
    """List all accounts"""
    return [AccountModel.from_account(account) for account in system.directory.list_accounts()]


@router.get("/{account_id}", response_model=AccountModel)
def get_account(account_id: str, system: TransactionSystem = Depends(get_transaction_system)):
    """Get account details"""
    account = system.directory.get_account(account_id).unwrap()
    return AccountModel.from_account(account)


@router.post("", response_model=AccountModel, status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    system: TransactionSystem = Depends(get_transaction_system)
):
    """Create a new account"""
    account = system.directory.create_account(
        owner=request.owner,
        balance=request.balance,
        currency=request.currency,
        account_id=request.id,
    ).unwrap()
    return AccountModel.from_account(account)


@router.put("/{account_id}", response_model=AccountModel)
def update_account(
    account_id: str,
    request: UpdateAccountRequest,
    system: TransactionSystem = Depends(get_transaction_system)
):
    """Replace the owner and balance of an account"""
    account = system.directory.update_account(account_id, request.owner, request.balance).unwrap()
    return AccountModel.from_account(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(account_id: str, system: TransactionSystem = Depends(get_transaction_system)):
    """Delete an account"""
    system.directory.delete_account(account_id).unwrap()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{account_id}/deposit", response_model=PaymentModel)
def deposit(
    account_id: str,
    request: DepositRequest,
    system: TransactionSystem = Depends(get_transaction_system)
):
    """
    Deposit into an account.

    With toAccountId in the body the path account is the source: it is
    debited and toAccountId is credited. Without it the path account is
    credited and nothing is debited.
    """
    if request.to_account_id:
        result = system.ledger.deposit(request.to_account_id, request.amount, account_id)
    else:
        result = system.ledger.deposit(account_id, request.amount)
    return PaymentModel.from_payment(result.unwrap())


@router.post("/{account_id}/withdraw", response_model=AccountModel)
def withdraw(
    account_id: str,
    request: WithdrawRequest,
    system: TransactionSystem = Depends(get_transaction_system)
):
    """Withdraw from an account"""
    account = system.ledger.withdraw(account_id, request.amount).unwrap()
    return AccountModel.from_account(account)
