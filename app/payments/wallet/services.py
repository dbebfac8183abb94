"""
WalletLedger: the only writer of User.wallet_balance.

Concurrency contract:
    Every mutation runs inside transaction.atomic() and first locks the
    user row with SELECT ... FOR UPDATE. Two concurrent debits for the same
    user therefore serialize; the second one re-reads the balance left by
    the first. The balance CHECK constraint on the user table is the last
    line of defence against a negative balance.

Idempotency:
    Each mutation carries a unique reference. The existing
    WalletTransaction for a reference is returned without touching the
    balance, so retried webhooks and tasks never move money twice.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.services import BaseService

from payments.exceptions import PaymentValidationError
from payments.wallet.exceptions import InsufficientFunds, WalletNotFound
from payments.wallet.models import WalletTransaction
from payments.wallet.types import WalletDirection, WalletTransactionKind

if TYPE_CHECKING:
    from orders.models import Order
    from payments.models import PaymentIntent


class WalletLedger(BaseService):
    """
    Atomic debit/credit of stored wallet balances.

    Injected into PaymentOrchestrator and EscrowManager; tests may pass a
    fake with the same three methods.
    """

    def reserve_and_debit(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reference: str,
        payment_intent: PaymentIntent | None = None,
        narration: str = "",
    ) -> WalletTransaction:
        """
        Debit a wallet for funds that are being applied right now.

        Never call this speculatively (e.g. before a card leg confirms).

        Args:
            user_id: Wallet owner
            amount: Positive amount to debit
            reference: Unique idempotency key for this debit
            payment_intent: Payment the debit funds
            narration: Description stored on the transaction

        Returns:
            The created WalletTransaction, or the existing one for reference

        Raises:
            PaymentValidationError: If amount is not positive
            WalletNotFound: If the user does not exist
            InsufficientFunds: If the balance is below amount
        """
        self._validate_amount(amount, reference)

        with transaction.atomic():
            user = self._lock_user(user_id)

            # Idempotency first: the balance check below must not reject a
            # replay of a debit that already succeeded.
            existing = WalletTransaction.objects.filter(reference=reference).first()
            if existing is not None:
                self.get_logger().info(
                    "Wallet debit already applied",
                    extra={"reference": reference, "user_id": str(user_id)},
                )
                return existing

            if user.wallet_balance < amount:
                self.get_logger().warning(
                    "Insufficient wallet balance",
                    extra={
                        "reference": reference,
                        "user_id": str(user_id),
                        "required": str(amount),
                        "available": str(user.wallet_balance),
                    },
                )
                raise InsufficientFunds(
                    user_id=user_id,
                    required=amount,
                    available=user.wallet_balance,
                )

            return self._apply(
                user=user,
                amount=amount,
                reference=reference,
                direction=WalletDirection.DEBIT,
                kind=WalletTransactionKind.PAYMENT,
                payment_intent=payment_intent,
                order=None,
                narration=narration,
            )

    def credit(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reference: str,
        kind: str = WalletTransactionKind.REFUND,
        payment_intent: PaymentIntent | None = None,
        order: Order | None = None,
        narration: str = "",
    ) -> WalletTransaction:
        """
        Credit a wallet (refund, escrow release, top-up).

        Idempotent on reference like reserve_and_debit.

        Raises:
            PaymentValidationError: If amount is not positive
            WalletNotFound: If the user does not exist
        """
        self._validate_amount(amount, reference)

        with transaction.atomic():
            user = self._lock_user(user_id)

            existing = WalletTransaction.objects.filter(reference=reference).first()
            if existing is not None:
                self.get_logger().info(
                    "Wallet credit already applied",
                    extra={"reference": reference, "user_id": str(user_id)},
                )
                return existing

            return self._apply(
                user=user,
                amount=amount,
                reference=reference,
                direction=WalletDirection.CREDIT,
                kind=kind,
                payment_intent=payment_intent,
                order=order,
                narration=narration,
            )

    def get_balance(self, user_id: uuid.UUID) -> Decimal:
        """Current balance without locking; use for quotes only."""
        balance = (
            get_user_model()
            .objects.filter(pk=user_id)
            .values_list("wallet_balance", flat=True)
            .first()
        )
        if balance is None:
            raise WalletNotFound(
                f"Wallet for user {user_id} not found",
                details={"user_id": str(user_id)},
            )
        return balance

    # ==========================================================================
    # Internals
    # ==========================================================================

    @staticmethod
    def _validate_amount(amount: Decimal, reference: str) -> None:
        if amount is None or Decimal(amount) <= 0:
            raise PaymentValidationError(
                "Wallet amount must be positive",
                details={"amount": str(amount), "reference": reference},
            )

    @staticmethod
    def _lock_user(user_id: uuid.UUID):
        user = (
            get_user_model()
            .objects.select_for_update()
            .filter(pk=user_id)
            .only("id", "wallet_balance")
            .first()
        )
        if user is None:
            raise WalletNotFound(
                f"Wallet for user {user_id} not found",
                details={"user_id": str(user_id)},
            )
        return user

    def _apply(
        self,
        user,
        amount: Decimal,
        reference: str,
        direction: str,
        kind: str,
        payment_intent: PaymentIntent | None,
        order: Order | None,
        narration: str,
    ) -> WalletTransaction:
        """Write the transaction row, then move the balance. Caller holds the lock."""
        if direction == WalletDirection.DEBIT:
            new_balance = user.wallet_balance - amount
        else:
            new_balance = user.wallet_balance + amount

        try:
            with transaction.atomic():
                txn = WalletTransaction.objects.create(
                    user_id=user.pk,
                    reference=reference,
                    direction=direction,
                    kind=kind,
                    amount=amount,
                    balance_after=new_balance,
                    payment_intent=payment_intent,
                    order=order,
                    narration=narration[:255],
                )
        except IntegrityError:
            # Same reference written concurrently under another user's lock
            return WalletTransaction.objects.get(reference=reference)

        user.wallet_balance = new_balance
        user.save(update_fields=["wallet_balance"])

        self.get_logger().info(
            f"Wallet {direction} applied",
            extra={
                "reference": reference,
                "user_id": str(user.pk),
                "amount": str(amount),
                "balance_after": str(new_balance),
                "kind": kind,
            },
        )
        return txn


# Default instance for callers that do not inject their own
wallet_ledger = WalletLedger()
