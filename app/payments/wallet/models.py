"""
WalletTransaction: append-only record of wallet mutations.

Every change to User.wallet_balance is paired with exactly one row here.
The unique reference is the idempotency key; replaying a debit or credit
with the same reference returns the existing row and moves no money.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.wallet.types import WalletDirection, WalletTransactionKind


class WalletTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    One wallet debit or credit.

    Fields:
        user: Wallet owner
        reference: Unique idempotency key (e.g. "escrow:<order_id>:release")
        direction / kind: Debit or credit, and why
        amount: Always positive; direction gives the sign
        balance_after: Wallet balance immediately after this mutation
        payment_intent / order: What the movement pays for or releases
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet_transactions",
        help_text="Wallet owner",
    )

    reference = models.CharField(
        max_length=150,
        unique=True,
        db_index=True,
        help_text="Unique idempotency key for this mutation",
    )

    direction = models.CharField(
        max_length=6,
        choices=WalletDirection.choices,
        help_text="Debit or credit",
    )

    kind = models.CharField(
        max_length=20,
        choices=WalletTransactionKind.choices,
        help_text="Reason for the mutation",
    )

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount moved (always positive)",
    )

    balance_after = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Wallet balance after this mutation",
    )

    payment_intent = models.ForeignKey(
        "payments.PaymentIntent",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallet_transactions",
        help_text="Payment this debit funds",
    )

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallet_transactions",
        help_text="Order whose escrow this credit releases",
    )

    narration = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Human-readable description",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Wallet Transaction"
        verbose_name_plural = "Wallet Transactions"
        indexes = [
            models.Index(fields=["user", "created_at"], name="payments_wa_user_id_7f3e19_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="wallet_transaction_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"WalletTransaction({self.reference}, {self.direction} {self.amount})"
