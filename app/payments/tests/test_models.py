"""
Tests for payment models.

PaymentIntent status is django-fsm protected: only PENDING can move, and
only once.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from payments.models import PaymentIntent, WebhookEvent
from payments.state_machines import PaymentIntentStatus, WebhookEventStatus
from payments.tests.factories import PaymentIntentFactory


@pytest.mark.django_db
class TestPaymentIntentTransitions:
    def test_starts_pending(self, pending_card_intent):
        assert pending_card_intent.status == PaymentIntentStatus.PENDING
        assert pending_card_intent.is_pending

    def test_pending_to_success(self, pending_card_intent):
        pending_card_intent.mark_success(gateway_response={"event": "charge.success"})
        pending_card_intent.save()

        assert pending_card_intent.status == PaymentIntentStatus.SUCCESS
        assert pending_card_intent.paid_at is not None
        assert pending_card_intent.gateway_response == {"event": "charge.success"}

    def test_pending_to_failed(self, pending_card_intent):
        pending_card_intent.mark_failed(reason="Declined")
        pending_card_intent.save()

        assert pending_card_intent.status == PaymentIntentStatus.FAILED
        assert pending_card_intent.failure_reason == "Declined"

    def test_success_is_reached_at_most_once(self, successful_intent):
        with pytest.raises(TransitionNotAllowed):
            successful_intent.mark_success()

    def test_failed_cannot_succeed(self, failed_intent):
        with pytest.raises(TransitionNotAllowed):
            failed_intent.mark_success()

    def test_status_cannot_be_assigned_directly(self, pending_card_intent):
        with pytest.raises(AttributeError):
            pending_card_intent.status = PaymentIntentStatus.SUCCESS


@pytest.mark.django_db
class TestPaymentIntentFields:
    def test_total_amount_includes_wallet_portion(self, pending_hybrid_intent):
        assert pending_hybrid_intent.total_amount == Decimal("5000.00")

    def test_cart_snapshot(self, pending_card_intent):
        assert len(pending_card_intent.cart_snapshot["items"]) == 1

    def test_reference_is_unique(self, pending_card_intent):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentIntentFactory(reference=pending_card_intent.reference)

    def test_amount_must_be_positive(self, buyer):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentIntentFactory(user=buyer, amount=Decimal("0.00"))

    def test_str(self, pending_card_intent):
        assert pending_card_intent.reference in str(pending_card_intent)


@pytest.mark.django_db
class TestWebhookEvent:
    def test_build_key(self):
        assert WebhookEvent.build_key("charge.success", "CART-1") == "charge.success:CART-1"

    def test_processing_increments_retry_count(self, pending_webhook):
        pending_webhook.mark_processing()

        assert pending_webhook.status == WebhookEventStatus.PROCESSING
        assert pending_webhook.retry_count == 1

    def test_processed_clears_error(self, failed_webhook):
        failed_webhook.mark_processing()
        failed_webhook.mark_processed()

        assert failed_webhook.is_processed
        assert failed_webhook.error_message is None
        assert failed_webhook.processed_at is not None

    def test_can_retry_below_limit(self, failed_webhook, settings):
        settings.WEBHOOK_MAX_RETRIES = 2
        assert failed_webhook.can_retry

        failed_webhook.retry_count = 2
        assert not failed_webhook.can_retry

    def test_event_key_is_unique(self, pending_webhook):
        with pytest.raises(IntegrityError), transaction.atomic():
            WebhookEvent.objects.create(
                event_key=pending_webhook.event_key,
                event_type=pending_webhook.event_type,
                payload={},
            )


def test_intent_default_status_is_pending():
    assert PaymentIntent._meta.get_field("status").default == PaymentIntentStatus.PENDING
