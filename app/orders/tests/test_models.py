"""
Tests for Order and ShipmentRequest models.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError
from django_fsm import TransitionNotAllowed

from orders.models import Order
from orders.states import EscrowReleaseVia, EscrowState, OrderStatus, ShippingMethod
from orders.tests.conftest import fresh
from orders.tests.factories import CARRIER_ADDRESS, OrderModelFactory, ShipmentRequestFactory


@pytest.mark.django_db
class TestOrderDefaults:
    def test_new_order_is_paid_and_in_escrow(self, order):
        assert order.status == OrderStatus.PAID
        assert order.escrow_state == EscrowState.IN_ESCROW
        assert order.is_in_escrow
        assert not order.escrow_released
        assert order.escrow_released_at is None

    def test_seller_receives_excludes_service_fee(self, buyer, seller):
        order = OrderModelFactory(
            buyer=buyer,
            seller=seller,
            unit_price=Decimal("2500.00"),
            quantity=2,
            service_fee=Decimal("125.00"),
        )

        assert order.seller_receives == Decimal("4875.00")

    def test_requires_shipment_only_for_carrier_with_address(self, buyer, seller):
        self_arranged = OrderModelFactory(buyer=buyer, seller=seller)
        carrier = OrderModelFactory(
            buyer=buyer,
            seller=seller,
            shipping_method=ShippingMethod.CARRIER,
            ship_to_address=CARRIER_ADDRESS,
        )
        carrier_without_address = OrderModelFactory(
            buyer=buyer, seller=seller, shipping_method=ShippingMethod.CARRIER
        )

        assert not self_arranged.requires_shipment
        assert carrier.requires_shipment
        assert not carrier_without_address.requires_shipment


@pytest.mark.django_db
class TestHoursRemaining:
    def test_rounds_up_partial_hours(self, order):
        now = order.inspection_deadline - timedelta(hours=2, minutes=1)

        assert order.hours_remaining(now) == 3

    def test_zero_after_deadline(self, order):
        assert order.hours_remaining(order.inspection_deadline + timedelta(minutes=5)) == 0

    def test_full_period(self, order):
        assert order.hours_remaining(order.inspection_deadline - timedelta(hours=72)) == 72


@pytest.mark.django_db
class TestEscrowTransition:
    def test_release_escrow(self, order):
        order.release_escrow(via=EscrowReleaseVia.CONFIRMED)
        order.save()

        stored = fresh(order)
        assert stored.escrow_state == EscrowState.RELEASED
        assert stored.escrow_released_via == EscrowReleaseVia.CONFIRMED
        assert stored.escrow_released_at is not None

    def test_release_is_terminal(self, order):
        order.release_escrow(via=EscrowReleaseVia.TIMED_OUT)

        with pytest.raises(TransitionNotAllowed):
            order.release_escrow(via=EscrowReleaseVia.CONFIRMED)

    def test_escrow_state_is_protected(self, order):
        with pytest.raises(AttributeError):
            order.escrow_state = EscrowState.RELEASED


@pytest.mark.django_db
class TestFulfilmentTransitions:
    def test_paid_shipped_delivered(self, order):
        order.mark_shipped()
        order.mark_delivered()
        order.save()

        assert fresh(order).status == OrderStatus.DELIVERED

    def test_cannot_deliver_unshipped(self, order):
        with pytest.raises(TransitionNotAllowed):
            order.mark_delivered()

    def test_shipping_does_not_touch_escrow(self, order):
        order.mark_shipped()
        order.save()

        assert fresh(order).escrow_state == EscrowState.IN_ESCROW

    def test_cancel_paid_order(self, order):
        order.cancel()
        order.save()

        assert fresh(order).status == OrderStatus.CANCELLED

    def test_cannot_cancel_shipped_order(self, order):
        order.mark_shipped()

        with pytest.raises(TransitionNotAllowed):
            order.cancel()

    def test_cannot_cancel_after_release(self, order):
        order.release_escrow(EscrowReleaseVia.CONFIRMED)

        with pytest.raises(TransitionNotAllowed):
            order.cancel()


@pytest.mark.django_db
class TestConstraints:
    def test_quality_rating_range(self, order):
        Order.objects.filter(pk=order.pk).update(quality_rating=5)

        with pytest.raises(IntegrityError):
            Order.objects.filter(pk=order.pk).update(quality_rating=6)


@pytest.mark.django_db
class TestShipmentRequest:
    def test_defaults(self):
        shipment = ShipmentRequestFactory()

        assert shipment.status == "pending"
        assert shipment.attempts == 0
        assert not shipment.is_dispatched
        assert shipment.next_attempt_at is None

    def test_one_request_per_order(self):
        shipment = ShipmentRequestFactory()

        with pytest.raises(IntegrityError):
            ShipmentRequestFactory(order=shipment.order)
