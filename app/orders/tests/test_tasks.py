"""
Tests for carrier shipment dispatch tasks.

The carrier is replaced with a stub dispatcher; payment and escrow state
must never change whatever the carrier does.
"""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from orders.exceptions import ShippingDispatchError
from orders.models import ShipmentRequest
from orders.shipping import ShipmentResult
from orders.states import EscrowState, ShipmentStatus
from orders.tasks import dispatch_shipment, retry_pending_shipments
from orders.tests.conftest import fresh
from orders.tests.factories import ShipmentRequestFactory


@pytest.fixture
def shipment(db):
    return ShipmentRequestFactory()


@pytest.fixture
def dispatcher():
    stub = MagicMock()
    stub.create_shipment.return_value = ShipmentResult(
        shipment_id="SB-1001",
        tracking_code="TRK-1001",
        tracking_url="https://track.example.com/TRK-1001",
    )
    with patch("orders.tasks.get_dispatcher", return_value=stub):
        yield stub


def reload(shipment) -> ShipmentRequest:
    return ShipmentRequest.objects.get(pk=shipment.pk)


@pytest.mark.django_db
class TestDispatchShipment:
    def test_dispatched(self, shipment, dispatcher):
        result = dispatch_shipment(str(shipment.id))

        assert result["status"] == "dispatched"
        assert result["shipment_id"] == "SB-1001"

        stored = reload(shipment)
        assert stored.status == ShipmentStatus.DISPATCHED
        assert stored.attempts == 1
        assert stored.dispatched_at is not None

        order = fresh(shipment.order)
        assert order.shipment_id == "SB-1001"
        assert order.tracking_code == "TRK-1001"
        assert order.tracking_url == "https://track.example.com/TRK-1001"

        spec = dispatcher.create_shipment.call_args.args[0]
        assert spec.ship_to["city"] == "Lekki"
        assert spec.service == "standard"

    def test_already_dispatched(self, shipment, dispatcher):
        dispatch_shipment(str(shipment.id))

        result = dispatch_shipment(str(shipment.id))

        assert result["status"] == "already_dispatched"
        assert dispatcher.create_shipment.call_count == 1

    def test_claims_request_before_calling_carrier(self, shipment, dispatcher):
        overlapping = {}

        def create_shipment(spec):
            overlapping["claim"] = reload(shipment).next_attempt_at
            overlapping["result"] = dispatch_shipment(str(shipment.id))
            return ShipmentResult(shipment_id="SB-1001", tracking_code="TRK-1001")

        dispatcher.create_shipment.side_effect = create_shipment

        result = dispatch_shipment(str(shipment.id))

        assert result["status"] == "dispatched"
        assert overlapping["claim"] > timezone.now()
        assert overlapping["result"]["status"] == "not_due"
        assert dispatcher.create_shipment.call_count == 1
        assert reload(shipment).next_attempt_at is None

    def test_request_claimed_elsewhere_is_skipped(self, shipment, dispatcher):
        ShipmentRequest.objects.filter(pk=shipment.pk).update(
            next_attempt_at=timezone.now() + timedelta(minutes=10)
        )

        result = dispatch_shipment(str(shipment.id))

        assert result["status"] == "not_due"
        dispatcher.create_shipment.assert_not_called()
        assert reload(shipment).attempts == 0

    def test_expired_claim_is_taken_over(self, shipment, dispatcher):
        ShipmentRequest.objects.filter(pk=shipment.pk).update(
            next_attempt_at=timezone.now() - timedelta(minutes=1)
        )

        assert dispatch_shipment(str(shipment.id))["status"] == "dispatched"

    def test_not_found(self, db, dispatcher):
        assert dispatch_shipment(str(uuid.uuid4()))["status"] == "not_found"
        dispatcher.create_shipment.assert_not_called()

    def test_retryable_failure_schedules_backoff(self, shipment, dispatcher):
        dispatcher.create_shipment.side_effect = ShippingDispatchError("Carrier is unavailable")

        with freeze_time("2026-03-01 10:00:00"):
            result = dispatch_shipment(str(shipment.id))
            expected_next = timezone.now() + timedelta(minutes=2)

        assert result["status"] == "retry_scheduled"
        stored = reload(shipment)
        assert stored.status == ShipmentStatus.PENDING
        assert stored.attempts == 1
        assert stored.last_error == "Carrier is unavailable"
        assert stored.next_attempt_at == expected_next

    def test_backoff_grows_with_attempts(self, shipment, dispatcher):
        ShipmentRequest.objects.filter(pk=shipment.pk).update(attempts=3)
        dispatcher.create_shipment.side_effect = ShippingDispatchError("Carrier timed out")

        with freeze_time("2026-03-01 10:00:00"):
            dispatch_shipment(str(shipment.id))
            expected_next = timezone.now() + timedelta(minutes=16)

        assert reload(shipment).next_attempt_at == expected_next

    def test_gives_up_after_max_attempts(self, shipment, dispatcher, settings):
        settings.SHIPMENT_MAX_ATTEMPTS = 5
        ShipmentRequest.objects.filter(pk=shipment.pk).update(attempts=4)
        dispatcher.create_shipment.side_effect = ShippingDispatchError("Carrier is unavailable")

        result = dispatch_shipment(str(shipment.id))

        assert result["status"] == "failed"
        stored = reload(shipment)
        assert stored.status == ShipmentStatus.FAILED
        assert stored.attempts == 5
        assert stored.next_attempt_at is None

    def test_rejection_is_not_retried(self, shipment, dispatcher):
        dispatcher.create_shipment.side_effect = ShippingDispatchError(
            "Invalid address", error_code="CARRIER_REJECTED", is_retryable=False
        )

        assert dispatch_shipment(str(shipment.id))["status"] == "failed"
        assert reload(shipment).status == ShipmentStatus.FAILED

    def test_incomplete_address_is_not_retried(self, dispatcher):
        shipment = ShipmentRequestFactory(payload={"ship_from": {}, "ship_to": {}})

        result = dispatch_shipment(str(shipment.id))

        assert result["status"] == "failed"
        dispatcher.create_shipment.assert_not_called()

    def test_abandoned_request_is_left_alone(self, shipment, dispatcher):
        ShipmentRequest.objects.filter(pk=shipment.pk).update(status=ShipmentStatus.FAILED)

        assert dispatch_shipment(str(shipment.id))["status"] == "abandoned"
        dispatcher.create_shipment.assert_not_called()

    def test_failure_never_touches_payment_or_escrow(self, shipment, dispatcher):
        dispatcher.create_shipment.side_effect = ShippingDispatchError("Carrier is unavailable")
        intent_status = shipment.order.payment_intent.status

        dispatch_shipment(str(shipment.id))

        order = fresh(shipment.order)
        assert order.escrow_state == EscrowState.IN_ESCROW
        assert order.payment_intent.status == intent_status


@pytest.mark.django_db
class TestRetryPendingShipments:
    def test_queues_due_requests(self):
        due = ShipmentRequestFactory()
        ShipmentRequest.objects.filter(pk=due.pk).update(
            attempts=1, next_attempt_at=timezone.now() - timedelta(minutes=1)
        )
        not_yet = ShipmentRequestFactory()
        ShipmentRequest.objects.filter(pk=not_yet.pk).update(
            attempts=1, next_attempt_at=timezone.now() + timedelta(minutes=30)
        )

        with patch("orders.tasks.dispatch_shipment.delay") as mock_delay:
            result = retry_pending_shipments()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(due.id))

    def test_picks_up_never_attempted_after_grace(self):
        lost = ShipmentRequestFactory()
        ShipmentRequest.objects.filter(pk=lost.pk).update(
            created_at=timezone.now() - timedelta(minutes=30)
        )
        ShipmentRequestFactory()

        with patch("orders.tasks.dispatch_shipment.delay") as mock_delay:
            result = retry_pending_shipments()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(lost.id))

    def test_skips_request_in_flight(self, shipment, dispatcher):
        ShipmentRequest.objects.filter(pk=shipment.pk).update(
            created_at=timezone.now() - timedelta(minutes=30)
        )
        seen = {}

        def create_shipment(spec):
            with patch("orders.tasks.dispatch_shipment.delay") as mock_delay:
                seen["sweep"] = retry_pending_shipments()
            seen["queued"] = mock_delay.call_count
            return ShipmentResult(shipment_id="SB-1001", tracking_code="TRK-1001")

        dispatcher.create_shipment.side_effect = create_shipment

        dispatch_shipment(str(shipment.id))

        assert seen == {"sweep": {"queued_count": 0}, "queued": 0}

    def test_skips_dispatched_and_failed(self):
        for status in (ShipmentStatus.DISPATCHED, ShipmentStatus.FAILED):
            request = ShipmentRequestFactory()
            ShipmentRequest.objects.filter(pk=request.pk).update(
                status=status, next_attempt_at=timezone.now() - timedelta(minutes=1)
            )

        with patch("orders.tasks.dispatch_shipment.delay") as mock_delay:
            assert retry_pending_shipments() == {"queued_count": 0}

        mock_delay.assert_not_called()
