"""
Tests for WalletLedger.

Tests cover:
- Debits and credits move the balance and write one transaction
- Insufficient funds is rejected, never clamped
- Replaying a reference moves no money
- Concurrent debits never overdraw
- Input validation
"""

import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal

import pytest
from django.db import connection

from accounts.models import User
from accounts.tests.factories import UserFactory
from payments.exceptions import PaymentValidationError
from payments.wallet.exceptions import InsufficientFunds, WalletNotFound
from payments.wallet.models import WalletTransaction
from payments.wallet.services import WalletLedger
from payments.wallet.types import WalletDirection, WalletTransactionKind


@pytest.fixture
def ledger():
    return WalletLedger()


def balance_of(user) -> Decimal:
    return User.objects.get(pk=user.pk).wallet_balance


@pytest.mark.django_db
class TestReserveAndDebit:
    def test_debit_reduces_balance(self, ledger, buyer):
        txn = ledger.reserve_and_debit(buyer.pk, Decimal("2500.00"), reference="WALLET-1")

        assert balance_of(buyer) == Decimal("7500.00")
        assert txn.direction == WalletDirection.DEBIT
        assert txn.kind == WalletTransactionKind.PAYMENT
        assert txn.balance_after == Decimal("7500.00")

    def test_debit_of_entire_balance(self, ledger, buyer):
        ledger.reserve_and_debit(buyer.pk, Decimal("10000.00"), reference="WALLET-ALL")

        assert balance_of(buyer) == Decimal("0.00")

    def test_insufficient_funds_rejected(self, ledger, buyer):
        with pytest.raises(InsufficientFunds) as exc_info:
            ledger.reserve_and_debit(buyer.pk, Decimal("12000.00"), reference="WALLET-2")

        error = exc_info.value
        assert error.error_code == "INSUFFICIENT_FUNDS"
        assert error.shortfall == Decimal("2000.00")
        assert error.details["available"] == "10000.00"
        assert balance_of(buyer) == Decimal("10000.00")
        assert not WalletTransaction.objects.filter(reference="WALLET-2").exists()

    def test_replayed_reference_is_idempotent(self, ledger, buyer):
        first = ledger.reserve_and_debit(buyer.pk, Decimal("1000.00"), reference="WALLET-3")
        second = ledger.reserve_and_debit(buyer.pk, Decimal("1000.00"), reference="WALLET-3")

        assert first.pk == second.pk
        assert balance_of(buyer) == Decimal("9000.00")
        assert WalletTransaction.objects.filter(user=buyer).count() == 1

    def test_replay_is_not_rejected_after_balance_drops(self, ledger, buyer):
        """A retried debit that already succeeded must not fail the balance check."""
        ledger.reserve_and_debit(buyer.pk, Decimal("10000.00"), reference="WALLET-4")

        replay = ledger.reserve_and_debit(buyer.pk, Decimal("10000.00"), reference="WALLET-4")

        assert replay.reference == "WALLET-4"
        assert balance_of(buyer) == Decimal("0.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_rejected(self, ledger, buyer, amount):
        with pytest.raises(PaymentValidationError):
            ledger.reserve_and_debit(buyer.pk, amount, reference="WALLET-5")

    def test_unknown_user(self, ledger, db):
        with pytest.raises(WalletNotFound):
            ledger.reserve_and_debit(uuid.uuid4(), Decimal("1.00"), reference="WALLET-6")


@pytest.mark.django_db(transaction=True)
class TestReserveAndDebitConcurrent:
    """Debits racing on one wallet; needs real transactions for row locks."""

    def test_concurrent_debits_do_not_go_negative(self):
        user = UserFactory(wallet_balance=Decimal("3000.00"))

        # 10 debits of 1,000 against a balance that covers only 3
        def debit(n):
            connection.close()
            try:
                WalletLedger().reserve_and_debit(user.pk, Decimal("1000.00"), reference=f"RACE-{n}")
            except InsufficientFunds:
                return Decimal("0")
            finally:
                connection.close()
            return Decimal("1000.00")

        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [executor.submit(debit, n) for n in range(10)]
            debited = [future.result() for future in as_completed(futures)]

        final_balance = balance_of(user)
        assert final_balance >= 0
        assert sum(debited) == Decimal("3000.00")
        assert final_balance == Decimal("0.00")
        assert WalletTransaction.objects.filter(reference__startswith="RACE-").count() == 3


@pytest.mark.django_db
class TestCredit:
    def test_credit_increases_balance(self, ledger, seller):
        txn = ledger.credit(
            seller.pk,
            Decimal("4875.00"),
            reference="escrow:abc:release",
            kind=WalletTransactionKind.ESCROW_RELEASE,
        )

        assert balance_of(seller) == Decimal("4875.00")
        assert txn.direction == WalletDirection.CREDIT
        assert txn.kind == WalletTransactionKind.ESCROW_RELEASE

    def test_credit_is_idempotent(self, ledger, seller):
        ledger.credit(seller.pk, Decimal("100.00"), reference="refund-1")
        ledger.credit(seller.pk, Decimal("100.00"), reference="refund-1")

        assert balance_of(seller) == Decimal("100.00")


@pytest.mark.django_db
class TestGetBalance:
    def test_returns_stored_balance(self, ledger, buyer):
        assert ledger.get_balance(buyer.pk) == Decimal("10000.00")

    def test_unknown_user(self, ledger):
        with pytest.raises(WalletNotFound):
            ledger.get_balance(uuid.uuid4())
