"""
Tests for the OrderFactory service.

Tests cover:
- Cart snapshot serialization and seller validation
- One order per snapshot line with evenly split fees, service share capped
  at the line value
- Escrow defaults and the inspection deadline
- ShipmentRequest outbox rows for carrier orders
"""

from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from core.exceptions import ValidationError
from orders.models import Order, ShipmentRequest
from orders.services import OrderFactory
from orders.states import EscrowReleaseVia, EscrowState, OrderStatus, ShipmentStatus
from payments.fees import ShippingTier, calculate_fees
from payments.services import CartItem, CartPaymentParams
from payments.tests.factories import PaymentIntentFactory, cart_snapshot
from payments.wallet.models import WalletTransaction

SHIPPING_ADDRESS = {"address": "4 Allen Avenue", "city": "Ikeja", "state": "Lagos"}


@pytest.fixture
def order_factory():
    return OrderFactory()


@pytest.fixture
def intent(buyer):
    return PaymentIntentFactory(user=buyer)


@pytest.mark.django_db
class TestBuildSnapshot:
    def test_snapshot_shape(self, order_factory, buyer, seller):
        params = CartPaymentParams(
            user=buyer,
            items=[CartItem(product_id="p1", seller_id=str(seller.pk), price=Decimal("40000"), title="Chair")],
            total_amount=Decimal("41500"),
            shipping_fee=Decimal("1500"),
            shipping_method="carrier",
            verification_level="basic",
            shipping_address=SHIPPING_ADDRESS,
        )
        breakdown = calculate_fees(
            Decimal("40000"), ShippingTier.BASIC_DELIVERY, shipping_fee=Decimal("1500")
        )

        snapshot = order_factory.build_snapshot(params, breakdown)

        assert snapshot["items"] == [
            {"product_id": "p1", "seller_id": str(seller.pk), "title": "Chair", "price": "40000", "quantity": 1}
        ]
        assert snapshot["fees"]["service_fee"] == str(breakdown.service_fee)
        assert snapshot["shipping_method"] == "carrier"
        assert snapshot["shipping_address"] == SHIPPING_ADDRESS

    def test_unknown_seller_rejected(self, order_factory, buyer):
        params = CartPaymentParams(
            user=buyer,
            items=[
                CartItem(
                    product_id="p1",
                    seller_id="00000000-0000-0000-0000-000000000001",
                    price=Decimal("5000"),
                )
            ],
            total_amount=Decimal("5000"),
            shipping_method="self-arranged",
            verification_level="self-arranged",
        )
        breakdown = calculate_fees(Decimal("5000"), ShippingTier.SELF_ARRANGED)

        with pytest.raises(ValidationError) as exc_info:
            order_factory.build_snapshot(params, breakdown)

        assert exc_info.value.error_code == "UNKNOWN_SELLER"
        assert exc_info.value.details["sellers"] == ["00000000-0000-0000-0000-000000000001"]

    def test_malformed_seller_id_rejected(self, order_factory, buyer):
        params = CartPaymentParams(
            user=buyer,
            items=[CartItem(product_id="p1", seller_id="not-a-uuid", price=Decimal("5000"))],
            total_amount=Decimal("5000"),
            shipping_method="self-arranged",
            verification_level="self-arranged",
        )

        with pytest.raises(ValidationError):
            order_factory.build_snapshot(params, calculate_fees(Decimal("5000"), ShippingTier.SELF_ARRANGED))


@pytest.mark.django_db
class TestCreateOrders:
    def test_one_order_per_line_sharing_reference(self, order_factory, intent, seller):
        orders = order_factory.create_orders(intent, cart_snapshot(seller, lines=3))

        assert len(orders) == 3
        assert {order.reference for order in orders} == {intent.reference}
        assert Order.objects.filter(payment_intent=intent).count() == 3

    def test_fees_split_evenly(self, order_factory, intent, seller):
        snapshot = cart_snapshot(seller, lines=3, service_fee="100", shipping_fee="1000")

        orders = order_factory.create_orders(intent, snapshot)

        assert [order.service_fee for order in orders] == [
            Decimal("33.34"),
            Decimal("33.33"),
            Decimal("33.33"),
        ]
        assert sum(order.shipping_fee for order in orders) == Decimal("1000")
        assert orders[0].total_amount == Decimal("5000.00") + Decimal("333.34")

    def test_service_share_never_exceeds_line_value(self, order_factory, intent, buyer, seller, escrow_manager):
        breakdown = calculate_fees(Decimal("10100"), ShippingTier.BASIC_DELIVERY)
        snapshot = cart_snapshot(seller, lines=2, service_fee=str(breakdown.service_fee))
        snapshot["items"][0]["price"] = "10000.00"
        snapshot["items"][1]["price"] = "100.00"

        orders = order_factory.create_orders(intent, snapshot)

        assert [order.service_fee for order in orders] == [Decimal("153.00"), Decimal("100.00")]
        assert all(order.seller_receives >= 0 for order in orders)

        for order in orders:
            escrow_manager.confirm_quality(order.id, buyer=buyer, rating=5)

        seller.refresh_from_db()
        assert seller.wallet_balance == breakdown.seller_receives == Decimal("9847.00")

    def test_order_fields(self, order_factory, intent, buyer, seller):
        order = order_factory.create_orders(intent, cart_snapshot(seller, quantity=2))[0]

        assert order.buyer_id == buyer.pk
        assert order.seller_id == seller.pk
        assert order.product_id == "prod-0"
        assert order.product_title == "Item 0"
        assert order.unit_price == Decimal("5000.00")
        assert order.quantity == 2
        assert order.total_amount == Decimal("10000.00")
        assert order.payment_method == intent.method
        assert order.status == OrderStatus.PAID
        assert order.escrow_state == EscrowState.IN_ESCROW

    def test_inspection_deadline_is_72_hours_after_payment(self, order_factory, intent, seller, settings):
        settings.ESCROW_INSPECTION_PERIOD_HOURS = 72

        with freeze_time("2026-03-01 10:00:00"):
            order = order_factory.create_orders(intent, cart_snapshot(seller))[0]

        assert order.paid_at == datetime(2026, 3, 1, 10, 0, tzinfo=dt_timezone.utc)
        assert order.inspection_deadline == datetime(2026, 3, 4, 10, 0, tzinfo=dt_timezone.utc)

    def test_empty_snapshot_rejected(self, order_factory, intent):
        with pytest.raises(ValidationError) as exc_info:
            order_factory.create_orders(intent, {"items": []})

        assert exc_info.value.error_code == "EMPTY_CART_SNAPSHOT"
        assert not Order.objects.exists()

    def test_self_arranged_orders_released_when_not_held(self, order_factory, intent, seller, settings):
        settings.ESCROW_SELF_ARRANGED_ORDERS = False

        order = order_factory.create_orders(intent, cart_snapshot(seller))[0]

        assert order.escrow_state == EscrowState.RELEASED
        assert order.escrow_released_via == EscrowReleaseVia.NOT_HELD
        assert WalletTransaction.objects.filter(order=order).count() == 1


@pytest.mark.django_db
class TestCarrierOrders:
    def test_carrier_order_queues_shipment(
        self, order_factory, intent, buyer, seller, django_capture_on_commit_callbacks
    ):
        snapshot = cart_snapshot(
            seller,
            shipping_method="carrier",
            shipping_fee="1500",
            shipping_address=SHIPPING_ADDRESS,
        )

        with patch("orders.tasks.dispatch_shipment.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                order = order_factory.create_orders(intent, snapshot)[0]

        shipment = ShipmentRequest.objects.get(order=order)
        assert shipment.status == ShipmentStatus.PENDING
        assert shipment.payload["ship_to"]["city"] == "Ikeja"
        assert shipment.payload["ship_to"]["name"] == buyer.full_name
        assert shipment.payload["ship_to"]["email"] == buyer.email
        assert shipment.payload["package"]["value"] == "5000.00"
        mock_delay.assert_called_once_with(str(shipment.id))

        assert order.ship_to_address["address"] == "4 Allen Avenue"
        assert order.ship_from_address["city"] == "Lagos"
        assert order.escrow_state == EscrowState.IN_ESCROW

    def test_dispatch_waits_for_commit(self, order_factory, intent, seller, django_capture_on_commit_callbacks):
        snapshot = cart_snapshot(seller, shipping_method="carrier", shipping_address=SHIPPING_ADDRESS)

        with patch("orders.tasks.dispatch_shipment.delay") as mock_delay:
            with django_capture_on_commit_callbacks() as callbacks:
                order_factory.create_orders(intent, snapshot)

            mock_delay.assert_not_called()

        assert len(callbacks) == 1

    def test_self_arranged_order_has_no_shipment(self, order_factory, intent, seller):
        order = order_factory.create_orders(intent, cart_snapshot(seller))[0]

        assert not ShipmentRequest.objects.filter(order=order).exists()
        assert order.ship_to_address == {}
