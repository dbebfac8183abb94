"""
Order and shipment models.

An Order is created per cart line only after the payment is confirmed.
All orders of one checkout share the payment reference. Escrow is an
explicit state machine on the order: IN_ESCROW until the buyer confirms
quality or the inspection deadline passes, then RELEASED for good.

ShipmentRequest is the carrier outbox: written in the same transaction as
the order, dispatched afterwards by a Celery task, retried until it
succeeds. A carrier failure never touches payment state.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from orders.states import (
    EscrowReleaseVia,
    EscrowState,
    OrderStatus,
    ShipmentStatus,
    ShippingMethod,
    VerificationLevel,
)
from payments.state_machines import PaymentMethod


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    One purchased cart line.

    State Flow:
        status:       PAID -> SHIPPED -> DELIVERED, PAID -> CANCELLED
        escrow_state: IN_ESCROW -> RELEASED (terminal)

    Fees are this order's equal share of the checkout's fees.
    seller_receives = unit_price * quantity - service_fee.
    """

    # ==========================================================================
    # Parties & Product
    # ==========================================================================

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="purchases",
        help_text="User who paid for the order",
    )

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sales",
        help_text="User who receives the proceeds",
    )

    product_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Catalog product identifier",
    )

    product_title = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Product title at purchase time",
    )

    quantity = models.PositiveIntegerField(
        default=1,
        help_text="Units purchased",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    unit_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Price per unit at purchase time",
    )

    total_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="unit_price * quantity + shipping share + insurance share",
    )

    service_fee = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="This order's share of the marketplace service fee",
    )

    shipping_fee = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="This order's share of the shipping fee",
    )

    insurance_fee = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="This order's share of the insurance fee",
    )

    # ==========================================================================
    # Payment
    # ==========================================================================

    payment_method = models.CharField(
        max_length=10,
        choices=PaymentMethod.choices,
        help_text="How the checkout was paid",
    )

    payment_intent = models.ForeignKey(
        "payments.PaymentIntent",
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Payment that funded this order",
    )

    reference = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Payment reference shared by all orders of one checkout",
    )

    paid_at = models.DateTimeField(
        help_text="When the payment was confirmed",
    )

    status = FSMField(
        default=OrderStatus.PAID,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
        help_text="Fulfilment status (managed by FSM)",
    )

    # ==========================================================================
    # Shipping
    # ==========================================================================

    shipping_method = models.CharField(
        max_length=20,
        choices=ShippingMethod.choices,
        help_text="Self-arranged or carrier delivery",
    )

    verification_level = models.CharField(
        max_length=20,
        choices=VerificationLevel.choices,
        default=VerificationLevel.BASIC,
        help_text="Verification tier chosen at checkout",
    )

    ship_to_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="Delivery address snapshot",
    )

    ship_from_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="Dispatch address snapshot",
    )

    shipment_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Carrier shipment identifier",
    )

    tracking_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Carrier tracking code",
    )

    tracking_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Carrier tracking page",
    )

    # ==========================================================================
    # Escrow
    # ==========================================================================

    escrow_state = FSMField(
        default=EscrowState.IN_ESCROW,
        choices=EscrowState.choices,
        db_index=True,
        protected=True,
        help_text="Escrow state (managed by FSM)",
    )

    inspection_deadline = models.DateTimeField(
        db_index=True,
        help_text="Escrow auto-releases after this time",
    )

    escrow_released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When escrow was released",
    )

    escrow_released_via = models.CharField(
        max_length=20,
        choices=EscrowReleaseVia.choices,
        blank=True,
        default="",
        help_text="How escrow was released",
    )

    quality_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Buyer's 1-5 quality rating",
    )

    quality_notes = models.TextField(
        blank=True,
        default="",
        help_text="Buyer's quality notes",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        indexes = [
            models.Index(fields=["escrow_state", "inspection_deadline"], name="orders_escrow_deadline_idx"),
            models.Index(fields=["buyer", "created_at"], name="orders_buyer_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quality_rating__isnull=True)
                | models.Q(quality_rating__gte=1, quality_rating__lte=5),
                name="order_quality_rating_range",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.id}, {self.reference}, {self.status}/{self.escrow_state})"

    # ==========================================================================
    # Derived
    # ==========================================================================

    @property
    def is_in_escrow(self) -> bool:
        return self.escrow_state == EscrowState.IN_ESCROW

    @property
    def escrow_released(self) -> bool:
        return self.escrow_state == EscrowState.RELEASED

    @property
    def seller_receives(self) -> Decimal:
        return self.unit_price * self.quantity - self.service_fee

    @property
    def requires_shipment(self) -> bool:
        return self.shipping_method == ShippingMethod.CARRIER and bool(self.ship_to_address)

    def hours_remaining(self, now: datetime | None = None) -> int:
        """Whole hours left in the inspection period, rounded up."""
        now = now or timezone.now()
        seconds = (self.inspection_deadline - now).total_seconds()
        return max(0, math.ceil(seconds / 3600))

    # ==========================================================================
    # Escrow Transitions (django-fsm)
    # ==========================================================================

    @transition(field=escrow_state, source=EscrowState.IN_ESCROW, target=EscrowState.RELEASED)
    def release_escrow(self, via: str):
        """
        Release the seller's proceeds.

        Transition: IN_ESCROW -> RELEASED. There is no way back.
        """
        self.escrow_released_at = timezone.now()
        self.escrow_released_via = via

    # ==========================================================================
    # Fulfilment Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=OrderStatus.PAID, target=OrderStatus.SHIPPED)
    def mark_shipped(self):
        pass

    @transition(field=status, source=OrderStatus.SHIPPED, target=OrderStatus.DELIVERED)
    def mark_delivered(self):
        pass

    @transition(
        field=status,
        source=OrderStatus.PAID,
        target=OrderStatus.CANCELLED,
        conditions=[is_in_escrow.fget],
    )
    def cancel(self):
        """
        Cancel an unshipped order. Refunding the buyer is handled manually.

        Only allowed while proceeds are still in escrow.
        """


class ShipmentRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    Outbox row for creating a carrier shipment.

    Processing Flow:
        1. Written with the order (same transaction), status PENDING
        2. dispatch_shipment queued on commit
        3. Success -> DISPATCHED, carrier identifiers copied onto the order
        4. Failure -> attempts += 1, next_attempt_at pushed back;
           FAILED once SHIPMENT_MAX_ATTEMPTS is reached
    """

    order = models.OneToOneField(
        Order,
        on_delete=models.CASCADE,
        related_name="shipment_request",
        help_text="Order to ship",
    )

    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.PENDING,
        db_index=True,
        help_text="Dispatch status",
    )

    payload = models.JSONField(
        default=dict,
        help_text="from / to / package / service sent to the carrier",
    )

    attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Dispatch attempts so far",
    )

    last_error = models.TextField(
        blank=True,
        default="",
        help_text="Error from the last failed attempt",
    )

    next_attempt_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Earliest time for the next retry",
    )

    dispatched_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the carrier accepted the shipment",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Shipment Request"
        verbose_name_plural = "Shipment Requests"

    def __str__(self) -> str:
        return f"ShipmentRequest({self.order_id}, {self.status}, attempts={self.attempts})"

    @property
    def is_dispatched(self) -> bool:
        return self.status == ShipmentStatus.DISPATCHED
