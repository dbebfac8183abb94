"""
Tests for payment Celery tasks.

Tasks are called directly (synchronously); .delay is patched where a task
queues others.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from orders.models import Order
from payments.models import PaymentIntent, WebhookEvent
from payments.state_machines import PaymentIntentStatus, PaymentMethod, WebhookEventStatus
from payments.tasks import expire_stale_intents, process_webhook_event, retry_failed_webhooks
from payments.tests.factories import PaymentIntentFactory, WebhookEventFactory


@pytest.mark.django_db
class TestProcessWebhookEvent:
    def test_processes_charge_success(self, pending_card_intent):
        webhook = WebhookEventFactory(reference=pending_card_intent.reference)

        result = process_webhook_event(str(webhook.id))

        assert result["status"] == "processed"
        webhook.refresh_from_db()
        assert webhook.status == WebhookEventStatus.PROCESSED
        assert PaymentIntent.objects.get(pk=pending_card_intent.pk).status == PaymentIntentStatus.SUCCESS
        assert Order.objects.filter(reference=pending_card_intent.reference).count() == 1

    def test_not_found(self, db):
        result = process_webhook_event(str(uuid.uuid4()))

        assert result["status"] == "not_found"

    def test_already_processed(self, pending_webhook):
        pending_webhook.mark_processing()
        pending_webhook.mark_processed()
        pending_webhook.save()

        result = process_webhook_event(str(pending_webhook.id))

        assert result["status"] == "already_processed"

    def test_unknown_reference_marks_event_failed(self, pending_webhook):
        result = process_webhook_event(str(pending_webhook.id))

        assert result["status"] == "handler_failed"
        pending_webhook.refresh_from_db()
        assert pending_webhook.status == WebhookEventStatus.FAILED
        assert pending_webhook.retry_count == 1


@pytest.mark.django_db
class TestRetryFailedWebhooks:
    def test_requeues_failed_events_below_limit(self, failed_webhook, settings):
        settings.WEBHOOK_MAX_RETRIES = 5
        exhausted = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=5)

        with patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(failed_webhook.id))
        assert WebhookEvent.objects.get(pk=exhausted.pk).status == WebhookEventStatus.FAILED

    def test_nothing_to_retry(self, pending_webhook):
        with patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            assert retry_failed_webhooks() == {"queued_count": 0}

        mock_delay.assert_not_called()


@pytest.mark.django_db
class TestExpireStaleIntents:
    def test_expires_abandoned_card_intents(self, buyer):
        abandoned = PaymentIntentFactory(user=buyer)
        fresh = PaymentIntentFactory(user=buyer)
        wallet = PaymentIntentFactory(user=buyer, method=PaymentMethod.WALLET)
        PaymentIntent.objects.filter(pk__in=[abandoned.pk, wallet.pk]).update(
            created_at=timezone.now() - timedelta(hours=72)
        )

        result = expire_stale_intents(hours=48)

        assert result == {"expired": 1, "skipped": 0}
        assert PaymentIntent.objects.get(pk=abandoned.pk).status == PaymentIntentStatus.FAILED
        assert PaymentIntent.objects.get(pk=fresh.pk).status == PaymentIntentStatus.PENDING
        assert PaymentIntent.objects.get(pk=wallet.pk).status == PaymentIntentStatus.PENDING

    def test_uses_configured_threshold(self, buyer, settings):
        settings.PAYMENT_INTENT_STALE_HOURS = 1
        intent = PaymentIntentFactory(user=buyer)
        PaymentIntent.objects.filter(pk=intent.pk).update(
            created_at=timezone.now() - timedelta(hours=2)
        )

        assert expire_stale_intents()["expired"] == 1
