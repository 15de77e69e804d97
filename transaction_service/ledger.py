"""
Ledger Engine

Applies balance mutations (withdraw, deposit, transfer) and records the
matching payment. Each operation is one unit of work:

1. the locks of every participating account are taken in sorted id order,
2. a storage transaction is opened,
3. accounts are re-read, every check runs, then all writes happen.

A failure during the writes rolls the whole unit back, so no reader can
see one side of a transfer without the other. Expected failures (bad id,
unknown account, insufficient funds, bad amount) come back as Result
values; only unexpected storage errors are raised.
"""

from decimal import Decimal, Inexact
from typing import List, Optional, Union

from .locks import AccountLockRegistry
from .logging_config import get_logger, log_action
from .models import Account, Payment, PaymentDirection, money_context, to_decimal
from .results import ErrorKind, Result
from .stores import AccountStore, PaymentStore


Amount = Union[Decimal, int, str]


class LedgerEngine:
    """
    Enforces the non-negative balance invariant for every money movement.

    Args:
        accounts: Account store
        payments: Payment store (must share the account store's storage backend)
        locks: Lock registry shared with every other writer of account balances
        strict_deposit_source: When True a deposit naming an unknown source
            account fails with ACCOUNT_NOT_FOUND; when False the source is
            ignored and the deposit proceeds as a plain credit.
    """

    def __init__(
        self,
        accounts: AccountStore,
        payments: PaymentStore,
        locks: Optional[AccountLockRegistry] = None,
        strict_deposit_source: bool = False
    ):
        if accounts.storage is not payments.storage:
            raise ValueError("Account and payment stores must share one storage backend")
        self.accounts = accounts
        self.payments = payments
        self.storage = accounts.storage
        self.locks = locks or AccountLockRegistry()
        self.strict_deposit_source = strict_deposit_source
        self.logger = get_logger("transaction_service.ledger")

    def withdraw(self, account_id: Optional[str], amount: Amount) -> Result[Account]:
        """
        Take `amount` out of an account. Records no payment.

        Returns:
            Result carrying the updated Account
        """
        if not account_id:
            return self._reject("withdraw", ErrorKind.INVALID_ACCOUNT,
                                "Account id cannot be null or empty")
        value = to_decimal(amount)
        if value is None or value <= 0:
            return self._reject("withdraw", ErrorKind.INVALID_AMOUNT,
                                f"Withdrawal amount must be a positive decimal, got {amount!r}",
                                account_id=account_id)

        try:
            with self.locks.hold(account_id), self.storage.atomic(), money_context():
                account = self.accounts.load(account_id, for_update=True)
                if account is None:
                    return self._reject("withdraw", ErrorKind.ACCOUNT_NOT_FOUND,
                                        "Account not found", account_id=account_id)
                if not account.has_funds(value):
                    return self._reject("withdraw", ErrorKind.INSUFFICIENT_FUNDS,
                                        "Insufficient funds in account", account_id=account_id,
                                        balance=account.balance, amount=value)

                account.balance -= value
                self.accounts.save(account)
        except Inexact:
            return self._inexact("withdraw", value, account_id=account_id)

        log_action(
            self.logger, "info", "Withdrawal applied",
            action="withdraw", resource=f"account:{account_id}",
            extra={"amount": str(value), "balance": str(account.balance)}
        )
        return Result.ok(account)

    def deposit(
        self,
        account_id: Optional[str],
        amount: Amount,
        from_account_id: Optional[str] = None
    ) -> Result[Payment]:
        """
        Credit `amount` to an account, optionally debiting a source account.

        A payment is always written: to_account is the credited account and
        the direction is "incoming". When a source account was found and
        debited, the payment also carries from_account and the direction
        becomes "outgoing".

        A negative amount is accepted and only rejected when it would push
        the credited account below zero. A source id that does not resolve
        is ignored unless strict_deposit_source is set.

        Returns:
            Result carrying the created Payment
        """
        if not account_id:
            return self._reject("deposit", ErrorKind.INVALID_ACCOUNT,
                                "Account id cannot be null or empty")
        source_id = from_account_id or None
        if source_id == account_id:
            return self._reject("deposit", ErrorKind.INVALID_ACCOUNT,
                                "Source account and target account cannot be the same",
                                account_id=account_id)
        value = to_decimal(amount)
        if value is None:
            return self._reject("deposit", ErrorKind.INVALID_AMOUNT,
                                f"Deposit amount must be a decimal, got {amount!r}",
                                account_id=account_id)

        try:
            with self.locks.hold(account_id, source_id), self.storage.atomic(), money_context():
                account = self.accounts.load(account_id, for_update=True)
                if account is None:
                    return self._reject("deposit", ErrorKind.ACCOUNT_NOT_FOUND,
                                        "Account not found", account_id=account_id)
                new_balance = account.balance + value
                if new_balance < 0:
                    return self._reject("deposit", ErrorKind.INSUFFICIENT_FUNDS,
                                        "Insufficient funds", account_id=account_id,
                                        balance=account.balance, amount=value)

                source = None
                if source_id:
                    source = self.accounts.load(source_id, for_update=True)
                    if source is None and self.strict_deposit_source:
                        return self._reject("deposit", ErrorKind.ACCOUNT_NOT_FOUND,
                                            f"Source account not found with id: {source_id}",
                                            account_id=account_id, from_account_id=source_id)
                    if source is None:
                        log_action(
                            self.logger, "warning", "Deposit source account not found, crediting without debit",
                            action="deposit", resource=f"account:{account_id}",
                            extra={"from_account_id": source_id, "amount": str(value)}
                        )
                    elif source.balance - value < 0:
                        return self._reject("deposit", ErrorKind.INSUFFICIENT_FUNDS,
                                            "Insufficient funds", account_id=account_id,
                                            from_account_id=source_id,
                                            balance=source.balance, amount=value)

                account.balance = new_balance
                self.accounts.save(account)

                direction = PaymentDirection.INCOMING
                if source is not None:
                    source.balance -= value
                    self.accounts.save(source)
                    direction = PaymentDirection.OUTGOING

                payment = self.payments.create(
                    amount=value,
                    direction=direction,
                    from_account=source.id if source is not None else None,
                    to_account=account_id,
                )
        except Inexact:
            return self._inexact("deposit", value, account_id=account_id, from_account_id=source_id)

        log_action(
            self.logger, "info", "Deposit applied",
            action="deposit", resource=f"account:{account_id}",
            extra={
                "payment_id": payment.id,
                "amount": str(value),
                "from_account": payment.from_account,
                "direction": payment.direction.value,
            }
        )
        return Result.ok(payment)

    def make_payment(
        self,
        from_account_id: Optional[str],
        to_account_id: Optional[str],
        amount: Amount
    ) -> Result[Payment]:
        """
        Move `amount` from one account to another and record an outgoing payment.

        Checked in order: ids present, ids differ, amount positive, source
        exists, target exists, source has funds. Both balance writes and the
        payment write commit together.

        Returns:
            Result carrying the created Payment
        """
        if not from_account_id or not to_account_id:
            return self._reject("make_payment", ErrorKind.INVALID_ACCOUNT,
                                "Account id cannot be null or empty")
        if from_account_id == to_account_id:
            return self._reject("make_payment", ErrorKind.INVALID_ACCOUNT,
                                "From account and to account cannot be the same.",
                                account_id=from_account_id)
        value = to_decimal(amount)
        if value is None or value <= 0:
            return self._reject("make_payment", ErrorKind.INVALID_AMOUNT,
                                f"Transfer amount must be a positive decimal, got {amount!r}",
                                from_account_id=from_account_id, to_account_id=to_account_id)

        try:
            with self.locks.hold(from_account_id, to_account_id), self.storage.atomic(), money_context():
                from_account = self.accounts.load(from_account_id, for_update=True)
                if from_account is None:
                    return self._reject("make_payment", ErrorKind.ACCOUNT_NOT_FOUND,
                                        f"Account not found with id: {from_account_id}")
                to_account = self.accounts.load(to_account_id, for_update=True)
                if to_account is None:
                    return self._reject("make_payment", ErrorKind.ACCOUNT_NOT_FOUND,
                                        f"Account not found with id: {to_account_id}")
                if not from_account.has_funds(value):
                    return self._reject("make_payment", ErrorKind.INSUFFICIENT_FUNDS,
                                        f"Insufficient balance in account with id: {from_account_id}",
                                        balance=from_account.balance, amount=value)

                from_account.balance -= value
                to_account.balance += value

                payment = self.payments.create(
                    amount=value,
                    direction=PaymentDirection.OUTGOING,
                    from_account=from_account_id,
                    to_account=to_account_id,
                )
                self.accounts.save(from_account)
                self.accounts.save(to_account)
        except Inexact:
            return self._inexact("make_payment", value,
                                 from_account_id=from_account_id, to_account_id=to_account_id)

        log_action(
            self.logger, "info", "Transfer applied",
            action="make_payment", resource=f"payment:{payment.id}",
            extra={
                "from_account": from_account_id,
                "to_account": to_account_id,
                "amount": str(value),
            }
        )
        return Result.ok(payment)

    def transfer(
        self,
        from_account_id: Optional[str],
        to_account_id: Optional[str],
        amount: Amount
    ) -> Result[Payment]:
        """Alias of make_payment"""
        return self.make_payment(from_account_id, to_account_id, amount)

    def get_payment(self, payment_id: Union[int, str]) -> Optional[Payment]:
        """Get payment by id"""
        try:
            return self.payments.load(int(payment_id))
        except (TypeError, ValueError):
            return None

    def list_payments(self, account_id: Optional[str] = None) -> List[Payment]:
        """All payments in id order, or only those where the account is source or target"""
        payments = self.payments.list_all()
        if account_id:
            payments = [p for p in payments if p.involves(account_id)]
        return payments

    def _reject(self, action: str, kind: ErrorKind, message: str, **details) -> Result:
        log_action(
            self.logger, "warning", f"{action} rejected: {message}",
            action=action, resource=f"account:{details.get('account_id')}" if details.get('account_id') else None,
            extra={"error": kind.value, **{k: str(v) for k, v in details.items()}}
        )
        return Result.err(kind, message)

    def _inexact(self, action: str, amount: Decimal, **details) -> Result:
        return self._reject(action, ErrorKind.INVALID_AMOUNT,
                            f"Amount {amount} cannot be applied to the balance without rounding",
                            amount=amount, **details)
