"""
Order factory: turns a confirmed payment into orders.

Orders are only ever built from the cart snapshot captured on the payment
intent at checkout, never from the buyer's live cart, so a card payment
confirmed hours later produces exactly what was priced and paid.

Per line item:
    - service, shipping and insurance fees split evenly (exact to the kobo);
      a service share never exceeds its line total, the excess moves to the
      other lines
    - status PAID, paid_at = now, inspection deadline = now + inspection period
    - escrow IN_ESCROW (self-arranged orders are released straight away when
      ESCROW_SELF_ARRANGED_ORDERS is off)
    - carrier orders get a ShipmentRequest outbox row; dispatch is queued
      after commit
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.exceptions import ValidationError
from core.services import BaseService

from orders.models import Order, ShipmentRequest
from orders.services.escrow_manager import EscrowManager
from orders.shipping import DEFAULT_PACKAGE
from orders.states import ShippingMethod
from payments.fees import split_evenly, split_evenly_capped

if TYPE_CHECKING:
    from payments.fees import FeeBreakdown
    from payments.models import PaymentIntent
    from payments.services import CartPaymentParams


class OrderFactory(BaseService):
    def __init__(self, escrow: EscrowManager | None = None):
        self.escrow = escrow or EscrowManager()

    # =========================================================================
    # Snapshot
    # =========================================================================

    def build_snapshot(self, params: CartPaymentParams, breakdown: FeeBreakdown) -> dict[str, Any]:
        """
        Serialize a priced cart for storage on the payment intent.

        Raises:
            ValidationError: A seller does not exist
        """
        self._check_sellers([item.seller_id for item in params.items])
        return {
            "items": [
                {
                    "product_id": str(item.product_id),
                    "seller_id": str(item.seller_id),
                    "title": item.title,
                    "price": str(item.price),
                    "quantity": item.quantity,
                }
                for item in params.items
            ],
            "fees": breakdown.as_dict(),
            "shipping_method": params.shipping_method,
            "verification_level": params.verification_level,
            "shipping_address": params.shipping_address or {},
        }

    # =========================================================================
    # Order Creation
    # =========================================================================

    def create_orders(self, intent: PaymentIntent, snapshot: dict[str, Any]) -> list[Order]:
        """
        Create one order per snapshot line item, all sharing intent.reference.

        Runs inside the caller's transaction when there is one; any error
        rolls back every order of the checkout.
        """
        items = snapshot.get("items") or []
        if not items:
            raise ValidationError(
                "Payment has no cart snapshot to create orders from",
                error_code="EMPTY_CART_SNAPSHOT",
                details={"reference": intent.reference},
            )

        fees = snapshot.get("fees") or {}
        count = len(items)
        line_totals = [Decimal(item["price"]) * int(item["quantity"]) for item in items]
        service_shares = split_evenly_capped(Decimal(fees.get("service_fee", "0")), line_totals)
        shipping_shares = split_evenly(Decimal(fees.get("shipping_fee", "0")), count)
        insurance_shares = split_evenly(Decimal(fees.get("insurance_fee", "0")), count)

        shipping_method = snapshot.get("shipping_method") or ShippingMethod.SELF_ARRANGED
        is_carrier = shipping_method == ShippingMethod.CARRIER
        ship_to = self._ship_to(intent, snapshot.get("shipping_address") or {}) if is_carrier else {}
        ship_from = dict(settings.MARKETPLACE_SHIP_FROM) if is_carrier else {}

        now = timezone.now()
        deadline = now + timedelta(hours=settings.ESCROW_INSPECTION_PERIOD_HOURS)

        orders: list[Order] = []
        with self.atomic():
            for item, service_fee, shipping_fee, insurance_fee in zip(
                items, service_shares, shipping_shares, insurance_shares
            ):
                unit_price = Decimal(item["price"])
                quantity = int(item["quantity"])
                order = Order.objects.create(
                    buyer_id=intent.user_id,
                    seller_id=item["seller_id"],
                    product_id=item["product_id"],
                    product_title=item.get("title", ""),
                    quantity=quantity,
                    unit_price=unit_price,
                    total_amount=unit_price * quantity + shipping_fee + insurance_fee,
                    service_fee=service_fee,
                    shipping_fee=shipping_fee,
                    insurance_fee=insurance_fee,
                    payment_method=intent.method,
                    payment_intent=intent,
                    reference=intent.reference,
                    paid_at=now,
                    shipping_method=shipping_method,
                    verification_level=snapshot.get("verification_level") or "basic",
                    ship_to_address=ship_to,
                    ship_from_address=ship_from,
                    inspection_deadline=deadline,
                )

                if not is_carrier and not settings.ESCROW_SELF_ARRANGED_ORDERS:
                    order = self.escrow.release_not_held(order)

                if order.requires_shipment:
                    self._queue_shipment(order)

                orders.append(order)

        self.get_logger().info(
            f"Created {len(orders)} orders",
            extra={
                "reference": intent.reference,
                "buyer_id": str(intent.user_id),
                "shipping_method": shipping_method,
            },
        )
        return orders

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_sellers(self, seller_ids: list[str]) -> None:
        try:
            wanted = {uuid.UUID(str(seller_id)) for seller_id in seller_ids}
        except ValueError:
            raise ValidationError("Invalid cart items", error_code="UNKNOWN_SELLER")

        found = set(
            get_user_model().objects.filter(pk__in=wanted, is_active=True).values_list("pk", flat=True)
        )
        missing = wanted - found
        if missing:
            raise ValidationError(
                "Invalid cart items",
                error_code="UNKNOWN_SELLER",
                details={"sellers": sorted(str(seller_id) for seller_id in missing)},
            )

    def _ship_to(self, intent: PaymentIntent, address: dict[str, Any]) -> dict[str, Any]:
        """Delivery address with contact details defaulted from the buyer."""
        buyer = intent.user
        return {
            "name": address.get("name") or buyer.full_name,
            "phone": address.get("phone") or buyer.phone,
            "email": buyer.email,
            "address": address.get("address", ""),
            "city": address.get("city", ""),
            "state": address.get("state", ""),
        }

    def _queue_shipment(self, order: Order) -> ShipmentRequest:
        from orders.tasks import dispatch_shipment

        shipment = ShipmentRequest.objects.create(
            order=order,
            payload={
                "ship_from": order.ship_from_address,
                "ship_to": order.ship_to_address,
                "package": {
                    **DEFAULT_PACKAGE,
                    "value": str(order.unit_price * order.quantity),
                    "description": f"Order {order.id}",
                },
                "service": "standard",
            },
        )
        shipment_id = str(shipment.id)
        transaction.on_commit(lambda: dispatch_shipment.delay(shipment_id))
        return shipment
