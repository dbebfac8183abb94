"""
Escrow manager: per-order escrow release.

Orders hold the seller's proceeds IN_ESCROW from payment until either the
buyer confirms quality or the inspection deadline passes. Both paths go
through the same release: an FSM transition under a row lock, then an
idempotent wallet credit to the seller keyed "escrow:<order_id>:release".

Usage:
    from orders.services import EscrowManager

    manager = EscrowManager()
    order = manager.confirm_quality(order_id, buyer=request.user, rating=5)
    status = manager.get_status(order_id, viewer=request.user)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.exceptions import PermissionDeniedError
from core.services import BaseService, ServiceResult

from orders.exceptions import EscrowAlreadyReleased, EscrowError, EscrowNotEligible, OrderNotFoundError
from orders.models import Order
from orders.states import EscrowReleaseVia, EscrowState, OrderStatus
from payments.wallet.services import wallet_ledger
from payments.wallet.types import WalletTransactionKind

if TYPE_CHECKING:
    import uuid

    from accounts.models import User
    from payments.wallet.services import WalletLedger


BATCH_SIZE = 100


@dataclass
class EscrowStatus:
    """Read-only escrow projection for buyer and seller screens."""

    order_id: str
    verification_level: str
    escrow_released: bool
    hours_remaining: int
    quality_rating: int | None
    quality_notes: str
    can_confirm_quality: bool
    inspection_deadline: datetime
    released_via: str


class EscrowManager(BaseService):
    def __init__(self, wallet: WalletLedger | None = None):
        self.wallet = wallet or wallet_ledger

    # =========================================================================
    # Release Paths
    # =========================================================================

    def confirm_quality(
        self,
        order_id: uuid.UUID | str,
        buyer: User,
        rating: int,
        notes: str | None = None,
    ) -> Order:
        """
        Buyer confirms the item and releases escrow early.

        Raises:
            OrderNotFoundError: Unknown order
            PermissionDeniedError: Caller is not the buyer
            EscrowError: Rating outside 1-5
            EscrowAlreadyReleased: Escrow was already released
            EscrowNotEligible: Order was cancelled
        """
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise EscrowError(
                "Quality rating must be between 1 and 5",
                error_code="INVALID_RATING",
                details={"rating": rating},
            )

        with self.atomic():
            order = self._lock(order_id)
            if order.buyer_id != buyer.pk:
                raise PermissionDeniedError("Only the buyer can confirm product quality")
            if order.escrow_released:
                raise EscrowAlreadyReleased(
                    "Escrow already released",
                    details={"order_id": str(order.id), "released_via": order.escrow_released_via},
                )
            if order.status == OrderStatus.CANCELLED:
                raise EscrowNotEligible(
                    "Cancelled orders cannot be confirmed",
                    details={"order_id": str(order.id)},
                )

            order.quality_rating = rating
            order.quality_notes = notes or ""
            self._release(order, via=EscrowReleaseVia.CONFIRMED)

        return order

    def release_expired(
        self, order_id: uuid.UUID | str, now: datetime | None = None
    ) -> ServiceResult[Order]:
        """
        Auto-release one order whose inspection period has ended.

        Re-checks the deadline under the lock, so a stale sweep result or a
        concurrent buyer confirmation is harmless.
        """
        now = now or timezone.now()
        try:
            with self.atomic():
                order = self._lock(order_id)
                if order.escrow_released:
                    return ServiceResult.failure(
                        "Escrow already released", error_code="ESCROW_ALREADY_RELEASED"
                    )
                if now <= order.inspection_deadline:
                    return ServiceResult.failure(
                        "Inspection period has not ended", error_code="ESCROW_NOT_EXPIRED"
                    )
                if order.status == OrderStatus.CANCELLED:
                    return ServiceResult.failure(
                        "Cancelled orders are not released", error_code="ESCROW_NOT_ELIGIBLE"
                    )
                self._release(order, via=EscrowReleaseVia.TIMED_OUT)
        except OrderNotFoundError as e:
            return self.handle_exception(e, "Escrow auto-release", logging.WARNING)

        return ServiceResult.success(order)

    def release_not_held(self, order: Order) -> Order:
        """Release an order the marketplace does not hold in escrow."""
        with self.atomic():
            order = self._lock(order.pk)
            self._release(order, via=EscrowReleaseVia.NOT_HELD)
        return order

    # =========================================================================
    # Queries
    # =========================================================================

    def find_expired(self, now: datetime | None = None, limit: int = BATCH_SIZE) -> list[Order]:
        """Orders still in escrow past their deadline, oldest first."""
        now = now or timezone.now()
        return list(
            Order.objects.filter(
                escrow_state=EscrowState.IN_ESCROW,
                inspection_deadline__lt=now,
            )
            .exclude(status=OrderStatus.CANCELLED)
            .order_by("inspection_deadline")[:limit]
        )

    def get_status(
        self, order_id: uuid.UUID | str, viewer: User, now: datetime | None = None
    ) -> EscrowStatus:
        """
        Escrow status for the buyer or seller.

        Pure read: nothing is saved, even when the deadline has passed.
        """
        order = self._get(order_id)
        if viewer.pk not in (order.buyer_id, order.seller_id):
            raise PermissionDeniedError("Only the buyer or seller can view escrow status")

        return EscrowStatus(
            order_id=str(order.id),
            verification_level=order.verification_level,
            escrow_released=order.escrow_released,
            hours_remaining=order.hours_remaining(now),
            quality_rating=order.quality_rating,
            quality_notes=order.quality_notes,
            can_confirm_quality=(
                order.is_in_escrow
                and order.status != OrderStatus.CANCELLED
                and order.buyer_id == viewer.pk
            ),
            inspection_deadline=order.inspection_deadline,
            released_via=order.escrow_released_via,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _get(self, order_id) -> Order:
        try:
            return Order.objects.get(pk=order_id)
        except (Order.DoesNotExist, DjangoValidationError, ValueError):
            raise OrderNotFoundError("Order not found", details={"order_id": str(order_id)})

    def _lock(self, order_id) -> Order:
        try:
            return Order.objects.select_for_update().get(pk=order_id)
        except (Order.DoesNotExist, DjangoValidationError, ValueError):
            raise OrderNotFoundError("Order not found", details={"order_id": str(order_id)})

    def _release(self, order: Order, via: str) -> None:
        """Transition to RELEASED and pay the seller. Caller holds the lock."""
        try:
            order.release_escrow(via=via)
        except TransitionNotAllowed:
            raise EscrowAlreadyReleased(
                "Escrow already released", details={"order_id": str(order.id)}
            )
        order.save()

        amount = order.seller_receives
        if amount > 0:
            self.wallet.credit(
                user_id=order.seller_id,
                amount=amount,
                reference=f"escrow:{order.id}:release",
                kind=WalletTransactionKind.ESCROW_RELEASE,
                order=order,
                narration=f"Escrow release for order {order.id}",
            )
        else:
            self.get_logger().critical(
                "Escrow released with no seller proceeds",
                extra={
                    "reconciliation_required": True,
                    "order_id": str(order.id),
                    "reference": order.reference,
                    "seller_receives": str(amount),
                },
            )

        self.get_logger().info(
            "Escrow released",
            extra={
                "order_id": str(order.id),
                "reference": order.reference,
                "via": via,
                "seller_id": str(order.seller_id),
                "amount": str(amount),
            },
        )
