"""
Service wiring and FastAPI dependencies
"""

import threading
from typing import Optional

from ..accounts import AccountDirectory
from ..config import ServiceConfig, get_config
from ..ledger import LedgerEngine
from ..locks import AccountLockRegistry
from ..storage import StorageInterface, create_storage
from ..stores import AccountStore, PaymentStore


class TransactionSystem:
    """All components wired to one storage backend and one lock registry"""

    def __init__(self, storage: Optional[StorageInterface] = None, config: Optional[ServiceConfig] = None):
        config = config or get_config()
        self.config = config
        self.storage = storage or create_storage(config.database_url)

        self.locks = AccountLockRegistry()
        self.account_store = AccountStore(self.storage)
        self.payment_store = PaymentStore(self.storage)
        self.ledger = LedgerEngine(
            self.account_store, self.payment_store, self.locks,
            strict_deposit_source=config.strict_deposit_source
        )
        self.directory = AccountDirectory(
            self.account_store, self.locks,
            default_currency=config.default_currency
        )

    def close(self) -> None:
        self.storage.close()


_system: Optional[TransactionSystem] = None
_system_guard = threading.Lock()


def get_transaction_system() -> TransactionSystem:
    """Dependency returning the process-wide system, built on first use"""
    global _system
    if _system is None:
        with _system_guard:
            if _system is None:
                _system = TransactionSystem()
    return _system


def shutdown_transaction_system() -> None:
    global _system
    with _system_guard:
        if _system is not None:
            _system.close()
            _system = None
