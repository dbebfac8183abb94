"""
PaymentIntent model: the payment log.

Every payment attempt (wallet, card or hybrid) is recorded as one
PaymentIntent keyed by a globally unique reference. The reference is the
idempotency key for the whole pipeline: it is sent to the card gateway,
echoed back in webhooks, and shared by every Order the payment produces.

Usage:
    from payments.models import PaymentIntent

    intent = PaymentIntent.objects.create(
        reference="CART-20240101120000-ab12cd34",
        user=buyer,
        amount=Decimal("853700.00"),
        method=PaymentMethod.CARD,
        purpose=PaymentPurpose.CART_PAYMENT,
        metadata={"cart": snapshot},
    )

    # Webhook confirmed the charge
    intent.mark_success(gateway_response=payload)
    intent.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

from payments.state_machines import (
    PaymentIntentStatus,
    PaymentMethod,
    PaymentPurpose,
)


class PaymentIntent(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A single payment attempt.

    State Flow:
        PENDING -> SUCCESS (funds confirmed)
        PENDING -> FAILED

    Both transitions only leave PENDING, so a reference reaches SUCCESS at
    most once no matter how many times the gateway delivers its webhook.

    Fields:
        reference: Unique, gateway-correlatable reference
        user: Paying user
        amount: Amount collected by this intent (card portion for hybrid)
        method / purpose: Payment path and what it pays for
        status: FSM state
        *_fee_amount: Fee breakdown captured at pricing time
        wallet_portion: Wallet leg of a hybrid payment, debited on confirmation
        metadata["cart"]: Priced cart snapshot replayed into orders
        requires_reconciliation: Set when money and records disagree

    Note:
        Intents are never deleted; they are the audit trail for every
        wallet debit and card charge.
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    reference = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique payment reference shared with the gateway and orders",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_intents",
        help_text="User making the payment",
    )

    # ==========================================================================
    # Amount & Path
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount this intent collects (card portion for hybrid payments)",
    )

    currency = models.CharField(
        max_length=3,
        default="NGN",
        help_text="ISO 4217 currency code",
    )

    method = models.CharField(
        max_length=10,
        choices=PaymentMethod.choices,
        help_text="Payment path (wallet, card, hybrid)",
    )

    purpose = models.CharField(
        max_length=30,
        choices=PaymentPurpose.choices,
        default=PaymentPurpose.CART_PAYMENT,
        help_text="What this payment is for",
    )

    status = FSMField(
        default=PaymentIntentStatus.PENDING,
        choices=PaymentIntentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status (managed by FSM)",
    )

    # ==========================================================================
    # Fee Breakdown
    # ==========================================================================

    service_fee_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Marketplace service fee included in this payment",
    )

    shipping_fee_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Shipping fee passed through to the carrier",
    )

    insurance_fee_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Insurance fee passed through",
    )

    wallet_portion = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Wallet leg of a hybrid payment (debited only after card confirmation)",
    )

    # ==========================================================================
    # Gateway
    # ==========================================================================

    authorization_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Hosted payment page URL returned by the gateway",
    )

    gateway_response = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last gateway payload associated with this intent",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When funds were confirmed",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the payment failed",
    )

    # ==========================================================================
    # Reconciliation
    # ==========================================================================

    requires_reconciliation = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Money movement and records disagree; needs manual review",
    )

    reconciliation_note = models.TextField(
        blank=True,
        default="",
        help_text="What needs reconciling",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Intent"
        verbose_name_plural = "Payment Intents"
        indexes = [
            models.Index(fields=["user", "status"], name="payments_pa_user_id_5e1c0a_idx"),
            models.Index(fields=["status", "created_at"], name="payments_pa_status_8b2d4f_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_intent_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(wallet_portion__gte=0),
                name="payment_intent_wallet_portion_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentIntent({self.reference}, {self.status}, {self.amount} {self.currency})"

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentIntentStatus.PENDING

    @property
    def is_successful(self) -> bool:
        return self.status == PaymentIntentStatus.SUCCESS

    @property
    def total_amount(self) -> Decimal:
        """Full amount paid by the buyer across both legs."""
        return self.amount + self.wallet_portion

    @property
    def cart_snapshot(self) -> dict:
        return self.get_metadata("cart", {})

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentIntentStatus.PENDING,
        target=PaymentIntentStatus.SUCCESS,
    )
    def mark_success(self, gateway_response: dict | None = None):
        """
        Record confirmed funds.

        Transition: PENDING -> SUCCESS
        """
        self.paid_at = timezone.now()
        if gateway_response is not None:
            self.gateway_response = gateway_response

    @transition(
        field=status,
        source=PaymentIntentStatus.PENDING,
        target=PaymentIntentStatus.FAILED,
    )
    def mark_failed(self, reason: str = ""):
        """
        Record a failed or abandoned payment.

        Transition: PENDING -> FAILED
        """
        self.failure_reason = reason
