"""
Tests for the Ledger Engine: withdraw, deposit, transfer and payment queries
"""

import logging
import tempfile
import threading
from decimal import Decimal
from pathlib import Path

import pytest

from transaction_service.accounts import AccountDirectory
from transaction_service.ledger import LedgerEngine
from transaction_service.locks import AccountLockRegistry
from transaction_service.models import PaymentDirection
from transaction_service.results import ErrorKind
from transaction_service.storage import InMemoryStorage, SQLiteStorage
from transaction_service.stores import AccountStore, PaymentStore


class FailingInMemoryStorage(InMemoryStorage):
    """Raises on the save of one chosen record while armed"""

    def __init__(self):
        super().__init__()
        self.fail_on = None

    def save(self, table, record_id, data):
        if self.fail_on == (table, record_id):
            raise IOError(f"disk full while writing {table}/{record_id}")
        super().save(table, record_id, data)


class FailingSQLiteStorage(SQLiteStorage):
    def __init__(self, db_path):
        super().__init__(db_path)
        self.fail_on = None

    def save(self, table, record_id, data):
        if self.fail_on == (table, record_id):
            raise IOError(f"disk full while writing {table}/{record_id}")
        super().save(table, record_id, data)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class LedgerTestCase:
    """Shared setup: accounts "1" (1000) and "2" (500)"""

    strict_deposit_source = False

    def make_storage(self):
        return FailingInMemoryStorage()

    def setup_method(self):
        self.storage = self.make_storage()
        self.accounts = AccountStore(self.storage)
        self.payments = PaymentStore(self.storage)
        self.locks = AccountLockRegistry()
        self.ledger = LedgerEngine(
            self.accounts, self.payments, self.locks,
            strict_deposit_source=self.strict_deposit_source
        )
        self.directory = AccountDirectory(self.accounts, self.locks)

        self.directory.create_account("Alice", Decimal("1000"), account_id="1").unwrap()
        self.directory.create_account("Bob", Decimal("500"), account_id="2").unwrap()

    def teardown_method(self):
        self.storage.close()

    def balance(self, account_id):
        return self.accounts.load(account_id).balance


class TestLedgerConstruction:
    """Test LedgerEngine wiring"""

    def test_stores_must_share_storage(self):
        with pytest.raises(ValueError, match="share"):
            LedgerEngine(AccountStore(InMemoryStorage()), PaymentStore(InMemoryStorage()))


class TestWithdraw(LedgerTestCase):
    """Test withdraw"""

    def test_withdraw_reduces_balance_without_payment(self):
        result = self.ledger.withdraw("1", Decimal("50"))

        assert result
        assert result.value.balance == Decimal("950")
        assert self.balance("1") == Decimal("950")
        assert self.payments.count() == 0

    def test_withdraw_entire_balance(self):
        result = self.ledger.withdraw("2", "500")
        assert result
        assert self.balance("2") == Decimal("0")

    def test_withdraw_more_than_balance(self):
        result = self.ledger.withdraw("2", Decimal("500.01"))

        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance("2") == Decimal("500")

    @pytest.mark.parametrize("account_id", ["", None])
    def test_withdraw_empty_account_id(self, account_id):
        result = self.ledger.withdraw(account_id, Decimal("1"))
        assert result.kind == ErrorKind.INVALID_ACCOUNT

    def test_withdraw_unknown_account(self):
        result = self.ledger.withdraw("missing", Decimal("1"))
        assert result.kind == ErrorKind.ACCOUNT_NOT_FOUND
        assert result.error.message == "Account not found"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc", None, "NaN"])
    def test_withdraw_rejects_bad_amounts(self, amount):
        result = self.ledger.withdraw("1", amount)

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("1") == Decimal("1000")

    def test_withdraw_keeps_decimal_precision(self):
        self.ledger.withdraw("1", Decimal("0.10"))
        self.ledger.withdraw("1", Decimal("0.20"))
        assert self.balance("1") == Decimal("999.70")


class TestDeposit(LedgerTestCase):
    """Test deposit with and without a source account"""

    def test_plain_deposit(self):
        result = self.ledger.deposit("1", Decimal("100"))

        assert result
        payment = result.value
        assert payment.to_account == "1"
        assert payment.from_account is None
        assert payment.amount == Decimal("100")
        assert payment.direction == PaymentDirection.INCOMING
        assert self.balance("1") == Decimal("1100")
        assert self.payments.count() == 1

    def test_deposit_with_source_moves_funds(self):
        result = self.ledger.deposit("2", Decimal("200"), "1")

        assert result
        payment = result.value
        assert payment.from_account == "1"
        assert payment.to_account == "2"
        assert payment.direction == PaymentDirection.OUTGOING
        assert self.balance("1") == Decimal("800")
        assert self.balance("2") == Decimal("700")

    def test_deposit_source_without_funds(self):
        result = self.ledger.deposit("1", Decimal("600"), "2")

        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_unresolved_source_is_ignored(self):
        result = self.ledger.deposit("1", Decimal("25"), "ghost")

        assert result
        assert result.value.from_account is None
        assert result.value.direction == PaymentDirection.INCOMING
        assert self.balance("1") == Decimal("1025")

    def test_empty_source_is_treated_as_absent(self):
        result = self.ledger.deposit("1", Decimal("25"), "")
        assert result
        assert result.value.from_account is None

    def test_negative_deposit_within_balance(self):
        result = self.ledger.deposit("2", Decimal("-100"))

        assert result
        assert self.balance("2") == Decimal("400")

    def test_negative_deposit_below_zero(self):
        result = self.ledger.deposit("2", Decimal("-500.01"))

        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    @pytest.mark.parametrize("account_id", ["", None])
    def test_deposit_empty_account_id(self, account_id):
        assert self.ledger.deposit(account_id, Decimal("1")).kind == ErrorKind.INVALID_ACCOUNT

    def test_deposit_unknown_account(self):
        assert self.ledger.deposit("missing", Decimal("1")).kind == ErrorKind.ACCOUNT_NOT_FOUND

    def test_deposit_from_same_account(self):
        result = self.ledger.deposit("1", Decimal("10"), "1")

        assert result.kind == ErrorKind.INVALID_ACCOUNT
        assert self.balance("1") == Decimal("1000")

    def test_deposit_rejects_non_decimal_amount(self):
        assert self.ledger.deposit("1", "ten").kind == ErrorKind.INVALID_AMOUNT


class TestStrictDepositSource(LedgerTestCase):
    """Unresolved deposit sources fail when strict mode is on"""

    strict_deposit_source = True

    def test_unresolved_source_fails(self):
        result = self.ledger.deposit("1", Decimal("25"), "ghost")

        assert result.kind == ErrorKind.ACCOUNT_NOT_FOUND
        assert "ghost" in result.error.message
        assert self.balance("1") == Decimal("1000")
        assert self.payments.count() == 0

    def test_resolved_source_still_works(self):
        assert self.ledger.deposit("2", Decimal("25"), "1")
        assert self.balance("1") == Decimal("975")


class TestMakePayment(LedgerTestCase):
    """Test transfers between two accounts"""

    def test_transfer_moves_funds_and_records_payment(self):
        result = self.ledger.make_payment("1", "2", Decimal("100"))

        assert result
        payment = result.value
        assert payment.id == 1
        assert payment.from_account == "1"
        assert payment.to_account == "2"
        assert payment.amount == Decimal("100")
        assert payment.direction == PaymentDirection.OUTGOING

        assert self.balance("1") == Decimal("900")
        assert self.balance("2") == Decimal("600")
        assert self.payments.count() == 1

    def test_transfer_conserves_total(self):
        before = self.balance("1") + self.balance("2")
        self.ledger.transfer("1", "2", Decimal("123.45"))
        self.ledger.transfer("2", "1", Decimal("23.45"))
        assert self.balance("1") + self.balance("2") == before

    def test_transfer_to_same_account(self):
        result = self.ledger.make_payment("1", "1", Decimal("1"))

        assert result.kind == ErrorKind.INVALID_ACCOUNT
        assert result.error.message == "From account and to account cannot be the same."

    def test_transfer_to_same_account_ignores_balance(self):
        result = self.ledger.make_payment("2", "2", Decimal("1000000"))
        assert result.kind == ErrorKind.INVALID_ACCOUNT

    def test_transfer_insufficient_funds(self):
        result = self.ledger.make_payment("2", "1", Decimal("500.01"))

        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_missing_accounts_checked_from_then_to(self):
        result = self.ledger.make_payment("ghost-a", "ghost-b", Decimal("1"))
        assert result.kind == ErrorKind.ACCOUNT_NOT_FOUND
        assert result.error.message == "Account not found with id: ghost-a"

        result = self.ledger.make_payment("1", "ghost-b", Decimal("1"))
        assert result.kind == ErrorKind.ACCOUNT_NOT_FOUND
        assert result.error.message == "Account not found with id: ghost-b"
        assert self.balance("1") == Decimal("1000")

    @pytest.mark.parametrize("from_id,to_id", [("", "2"), ("1", None), (None, None)])
    def test_transfer_empty_ids(self, from_id, to_id):
        assert self.ledger.make_payment(from_id, to_id, Decimal("1")).kind == ErrorKind.INVALID_ACCOUNT

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), "1e", None])
    def test_transfer_rejects_bad_amounts(self, amount):
        assert self.ledger.make_payment("1", "2", amount).kind == ErrorKind.INVALID_AMOUNT

    def test_payment_ids_increase(self):
        ids = [self.ledger.make_payment("1", "2", Decimal("1")).value.id for _ in range(3)]
        ids.append(self.ledger.deposit("1", Decimal("1")).value.id)
        assert ids == [1, 2, 3, 4]


class TestPaymentQueries(LedgerTestCase):
    """Test get_payment and list_payments"""

    def setup_method(self):
        super().setup_method()
        self.directory.create_account("Carol", Decimal("0"), account_id="3").unwrap()
        self.ledger.make_payment("1", "2", Decimal("10")).unwrap()
        self.ledger.make_payment("2", "3", Decimal("5")).unwrap()
        self.ledger.deposit("1", Decimal("1")).unwrap()

    def test_get_payment(self):
        payment = self.ledger.get_payment(2)
        assert payment.from_account == "2"
        assert payment.to_account == "3"
        assert self.ledger.get_payment("2") == payment

    def test_get_unknown_payment(self):
        assert self.ledger.get_payment(99) is None
        assert self.ledger.get_payment("not-a-number") is None

    def test_list_payments_in_id_order(self):
        assert [p.id for p in self.ledger.list_payments()] == [1, 2, 3]

    def test_list_payments_for_account(self):
        assert [p.id for p in self.ledger.list_payments("1")] == [1, 3]
        assert [p.id for p in self.ledger.list_payments("3")] == [2]
        assert self.ledger.list_payments("nobody") == []

    def test_payments_survive_account_deletion(self):
        self.directory.delete_account("3").unwrap()
        assert [p.id for p in self.ledger.list_payments("3")] == [2]


class TestExactArithmetic(LedgerTestCase):
    """Balances change by exactly the amount applied, or not at all"""

    big = Decimal("10000000000000000000000000")

    def setup_method(self):
        super().setup_method()
        self.directory.create_account("Whale", self.big, account_id="big").unwrap()

    def test_withdraw_with_too_many_places_rejected(self):
        result = self.ledger.withdraw("1", Decimal("1E-30"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("1") == Decimal("1000")

    def test_transfer_with_too_many_places_rejected(self):
        result = self.ledger.make_payment("1", "2", Decimal("1E-26"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_smallest_unit_applied_exactly(self):
        self.ledger.withdraw("1", Decimal("0.00000001")).unwrap()
        self.ledger.make_payment("1", "2", Decimal("0.00000001")).unwrap()

        assert self.balance("1") == Decimal("999.99999998")
        assert self.balance("2") == Decimal("500.00000001")

    def test_withdraw_that_would_round_is_rejected(self):
        result = self.ledger.withdraw("big", Decimal("0.0001"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("big") == self.big

    def test_deposit_that_would_round_is_rejected(self):
        result = self.ledger.deposit("big", Decimal("0.0001"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("big") == self.big
        assert self.payments.count() == 0

    def test_deposit_from_source_that_would_round_is_rejected(self):
        result = self.ledger.deposit("1", Decimal("0.0001"), "big")

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("1") == Decimal("1000")
        assert self.balance("big") == self.big
        assert self.payments.count() == 0

    def test_transfer_that_would_round_is_rejected(self):
        result = self.ledger.make_payment("1", "big", Decimal("0.0001"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert self.balance("1") == Decimal("1000")
        assert self.balance("big") == self.big
        assert self.payments.count() == 0

    def test_large_transfer_conserves_total(self):
        before = self.balance("big") + self.balance("2")
        self.ledger.make_payment("big", "2", Decimal("1234567")).unwrap()
        assert self.balance("big") + self.balance("2") == before


class TestFailureAtomicity(LedgerTestCase):
    """A failing write leaves no partial state behind"""

    def test_transfer_rolled_back_when_second_account_write_fails(self):
        self.storage.fail_on = ("accounts", "2")

        with pytest.raises(IOError):
            self.ledger.make_payment("1", "2", Decimal("100"))

        self.storage.fail_on = None
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_deposit_rolled_back_when_source_write_fails(self):
        self.storage.fail_on = ("accounts", "1")

        with pytest.raises(IOError):
            self.ledger.deposit("2", Decimal("100"), "1")

        self.storage.fail_on = None
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_deposit_rolled_back_when_payment_write_fails(self):
        """Both balances have been written when the final payment write fails"""
        self.storage.fail_on = ("payments", "1")

        with pytest.raises(IOError):
            self.ledger.deposit("2", Decimal("100"), "1")

        self.storage.fail_on = None
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_plain_deposit_rolled_back_when_payment_write_fails(self):
        self.storage.fail_on = ("payments", "1")

        with pytest.raises(IOError):
            self.ledger.deposit("2", Decimal("100"))

        self.storage.fail_on = None
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_sequence_value_of_failed_transfer_is_not_observed(self):
        self.storage.fail_on = ("accounts", "2")
        with pytest.raises(IOError):
            self.ledger.make_payment("1", "2", Decimal("100"))
        self.storage.fail_on = None

        assert self.ledger.make_payment("1", "2", Decimal("100")).value.id == 1


class TestSQLiteFailureAtomicity(TestFailureAtomicity):
    """Same guarantees against a real database file"""

    def make_storage(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        return FailingSQLiteStorage(Path(self.temp_dir.name) / "ledger.db")

    def teardown_method(self):
        super().teardown_method()
        self.temp_dir.cleanup()

    def test_transfer_rolled_back_when_source_write_fails(self):
        self.storage.fail_on = ("accounts", "1")

        with pytest.raises(IOError):
            self.ledger.make_payment("1", "2", Decimal("100"))

        self.storage.fail_on = None
        assert self.balance("1") == Decimal("1000")
        assert self.balance("2") == Decimal("500")
        assert self.payments.count() == 0

    def test_successful_transfer_is_persisted(self):
        self.ledger.make_payment("1", "2", Decimal("100")).unwrap()

        reopened = SQLiteStorage(self.storage.db_path)
        try:
            assert AccountStore(reopened).load("1").balance == Decimal("900")
            assert PaymentStore(reopened).load(1).to_account == "2"
        finally:
            reopened.close()


class TestConcurrency(LedgerTestCase):
    """Concurrent operations never deadlock and never lose updates"""

    def run_threads(self, targets):
        threads = [threading.Thread(target=target) for target in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        assert not any(t.is_alive() for t in threads)

    def test_opposite_transfers_conserve_total(self):
        before = self.balance("1") + self.balance("2")

        def forward():
            for _ in range(50):
                self.ledger.make_payment("1", "2", Decimal("3"))

        def backward():
            for _ in range(50):
                self.ledger.make_payment("2", "1", Decimal("2"))

        self.run_threads([forward, backward, forward, backward])

        assert self.balance("1") + self.balance("2") == before
        assert self.balance("1") >= 0
        assert self.balance("2") >= 0

    def test_concurrent_withdrawals_never_overdraw(self):
        outcomes = []
        outcomes_lock = threading.Lock()

        def withdraw():
            result = self.ledger.withdraw("2", Decimal("30"))
            with outcomes_lock:
                outcomes.append(result.kind)

        self.run_threads([withdraw] * 25)

        successes = outcomes.count(None)
        assert successes == 16  # 16 * 30 = 480 <= 500 < 17 * 30
        assert outcomes.count(ErrorKind.INSUFFICIENT_FUNDS) == 9
        assert self.balance("2") == Decimal("20")

    def test_concurrent_deposits_are_all_applied(self):
        def deposit():
            for _ in range(20):
                self.ledger.deposit("2", Decimal("1"))

        self.run_threads([deposit] * 5)

        assert self.balance("2") == Decimal("600")
        assert self.payments.count() == 100
        assert sorted(p.id for p in self.payments.list_all()) == list(range(1, 101))


class TestLedgerLogging(LedgerTestCase):
    """Rejections and mutations are logged with structured fields"""

    def setup_method(self):
        super().setup_method()
        self.logger = logging.getLogger("transaction_service.ledger")
        self.handler = ListHandler()
        self.previous_level = self.logger.level
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.INFO)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)
        self.logger.setLevel(self.previous_level)
        super().teardown_method()

    def test_successful_transfer_logged(self):
        self.ledger.make_payment("1", "2", Decimal("5"))

        record = self.handler.records[-1]
        assert record.levelno == logging.INFO
        assert record.action == "make_payment"
        assert record.resource == "payment:1"
        assert record.extra["amount"] == "5"

    def test_rejection_logged_as_warning(self):
        self.ledger.withdraw("2", Decimal("9999"))

        record = self.handler.records[-1]
        assert record.levelno == logging.WARNING
        assert record.action == "withdraw"
        assert record.extra["error"] == "insufficient_funds"
        assert record.resource == "account:2"
