"""
Account and payment stores: typed load/save/delete/list over a storage backend
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from .models import Account, Payment, PaymentDirection
from .storage import StorageInterface


class AccountStore:
    """Key-value persistence for accounts keyed by account id"""

    def __init__(self, storage: StorageInterface, table: str = "accounts"):
        self.storage = storage
        self.table = table

    def load(self, account_id: str, for_update: bool = False) -> Optional[Account]:
        data = self.storage.load(self.table, account_id, for_update=for_update)
        if data:
            return Account.from_dict(data)
        return None

    def exists(self, account_id: str) -> bool:
        return self.storage.exists(self.table, account_id)

    def save(self, account: Account) -> Account:
        account.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table, account.id, account.to_dict())
        return account

    def delete(self, account: Account) -> bool:
        return self.storage.delete(self.table, account.id)

    def list_all(self) -> List[Account]:
        return [Account.from_dict(data) for data in self.storage.load_all(self.table)]


class PaymentStore:
    """Append-only persistence for payments; ids come from a storage sequence"""

    def __init__(self, storage: StorageInterface, table: str = "payments"):
        self.storage = storage
        self.table = table

    def create(
        self,
        amount: Decimal,
        direction: PaymentDirection,
        from_account: Optional[str] = None,
        to_account: Optional[str] = None
    ) -> Payment:
        payment = Payment(
            id=self.storage.next_sequence(self.table),
            amount=amount,
            direction=direction,
            from_account=from_account,
            to_account=to_account,
        )
        self.storage.save(self.table, str(payment.id), payment.to_dict())
        return payment

    def load(self, payment_id: int) -> Optional[Payment]:
        data = self.storage.load(self.table, str(payment_id))
        if data:
            return Payment.from_dict(data)
        return None

    def list_all(self) -> List[Payment]:
        payments = [Payment.from_dict(data) for data in self.storage.load_all(self.table)]
        payments.sort(key=lambda p: p.id)
        return payments

    def count(self) -> int:
        return self.storage.count(self.table)
