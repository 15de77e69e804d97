"""
Account Directory

Account lifecycle: list, get, create, update, delete. Balance arithmetic
lives in the ledger; the only balance write here is the direct replacement
done by update, which runs under the same per-account lock the ledger uses.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union
import uuid

from .locks import AccountLockRegistry
from .logging_config import get_logger, log_action
from .models import Account, to_decimal
from .results import ErrorKind, Result
from .stores import AccountStore


class AccountDirectory:
    """CRUD over accounts with the same id validation as the ledger"""

    def __init__(
        self,
        accounts: AccountStore,
        locks: Optional[AccountLockRegistry] = None,
        default_currency: str = "USD"
    ):
        self.accounts = accounts
        self.storage = accounts.storage
        self.locks = locks or AccountLockRegistry()
        self.default_currency = default_currency
        self.logger = get_logger("transaction_service.accounts")

    def list_accounts(self) -> List[Account]:
        return self.accounts.list_all()

    def get_account(self, account_id: Optional[str]) -> Result[Account]:
        """Empty or None id is INVALID_ACCOUNT, never ACCOUNT_NOT_FOUND"""
        if not account_id:
            return Result.err(ErrorKind.INVALID_ACCOUNT, "Account id cannot be null or empty")
        account = self.accounts.load(account_id)
        if account is None:
            return Result.err(ErrorKind.ACCOUNT_NOT_FOUND, "Account not found")
        return Result.ok(account)

    def create_account(
        self,
        owner: str,
        balance: Union[Decimal, int, str] = Decimal("0"),
        currency: Optional[str] = None,
        account_id: Optional[str] = None
    ) -> Result[Account]:
        """
        Create a new account

        Args:
            owner: Display name of the owner
            balance: Opening balance, must be a non-negative decimal
            currency: Currency label (informational only)
            account_id: Specific id to use; a UUID is generated when omitted

        Returns:
            Result carrying the created Account
        """
        value = to_decimal(balance)
        if value is None or value < 0:
            return Result.err(ErrorKind.INVALID_AMOUNT,
                              f"Opening balance must be a non-negative decimal, got {balance!r}")

        account_id = account_id or str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        with self.locks.hold(account_id), self.storage.atomic():
            if self.accounts.exists(account_id):
                return Result.err(ErrorKind.INVALID_ACCOUNT, f"Account {account_id} already exists")
            account = Account(
                id=account_id,
                created_at=now,
                updated_at=now,
                owner=owner,
                balance=value,
                currency=currency or self.default_currency,
            )
            self.accounts.save(account)

        log_action(
            self.logger, "info", "Account created",
            action="create_account", resource=f"account:{account.id}",
            extra={"owner": owner, "balance": str(account.balance), "currency": account.currency}
        )
        return Result.ok(account)

    def update_account(
        self,
        account_id: Optional[str],
        owner: str,
        balance: Union[Decimal, int, str]
    ) -> Result[Account]:
        """Replace owner and balance; id and currency never change here"""
        if not account_id:
            return Result.err(ErrorKind.INVALID_ACCOUNT, "Account id cannot be null or empty")
        value = to_decimal(balance)
        if value is None or value < 0:
            return Result.err(ErrorKind.INVALID_AMOUNT,
                              f"Balance must be a non-negative decimal, got {balance!r}")

        with self.locks.hold(account_id), self.storage.atomic():
            account = self.accounts.load(account_id, for_update=True)
            if account is None:
                return Result.err(ErrorKind.ACCOUNT_NOT_FOUND, "Account not found")
            previous_balance = account.balance
            account.owner = owner
            account.balance = value
            self.accounts.save(account)

        log_action(
            self.logger, "info", "Account updated",
            action="update_account", resource=f"account:{account_id}",
            extra={"owner": owner, "previous_balance": str(previous_balance), "balance": str(value)}
        )
        return Result.ok(account)

    def delete_account(self, account_id: Optional[str]) -> Result[Account]:
        """Delete an account. Payments that reference it are kept."""
        if not account_id:
            return Result.err(ErrorKind.INVALID_ACCOUNT, "Account id cannot be null or empty")

        with self.locks.hold(account_id), self.storage.atomic():
            account = self.accounts.load(account_id, for_update=True)
            if account is None:
                return Result.err(ErrorKind.ACCOUNT_NOT_FOUND, "Account not found")
            self.accounts.delete(account)

        log_action(
            self.logger, "info", "Account deleted",
            action="delete_account", resource=f"account:{account_id}"
        )
        return Result.ok(account)
