"""
Tests for webhook handler dispatch and the shared run_webhook routine.
"""

from unittest.mock import MagicMock, patch

import pytest

from core.services import ServiceResult
from payments.models import PaymentIntent
from payments.state_machines import PaymentIntentStatus, WebhookEventStatus
from payments.tests.factories import WebhookEventFactory
from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    register_handler,
    run_webhook,
)


@pytest.fixture
def scratch_handler():
    """Register a throwaway handler and remove it afterwards."""
    registered = []

    def _register(event_type, func):
        register_handler(event_type)(func)
        registered.append(event_type)
        return func

    yield _register

    for event_type in registered:
        WEBHOOK_HANDLERS.pop(event_type, None)


class TestRegistry:
    def test_charge_handlers_registered(self):
        assert "charge.success" in WEBHOOK_HANDLERS
        assert "charge.failed" in WEBHOOK_HANDLERS

    def test_register_handler(self, scratch_handler):
        def handler(webhook_event):
            return ServiceResult.success({"handled": True})

        scratch_handler("test.event", handler)

        assert WEBHOOK_HANDLERS["test.event"] is handler


@pytest.mark.django_db
class TestDispatch:
    def test_unknown_event_type_is_ignored(self):
        webhook = WebhookEventFactory(event_type="subscription.create")

        result = dispatch_webhook(webhook)

        assert result.success
        assert result.data == {"status": "ignored"}

    def test_charge_success_reaches_orchestrator(self, pending_card_intent):
        webhook = WebhookEventFactory(reference=pending_card_intent.reference)
        orchestrator = MagicMock()
        orchestrator.on_gateway_event.return_value = ServiceResult.success({"status": "processed"})

        with patch("payments.webhooks.handlers.get_orchestrator", return_value=orchestrator):
            result = dispatch_webhook(webhook)

        assert result.success
        event = orchestrator.on_gateway_event.call_args.args[0]
        assert event.event == "charge.success"
        assert event.reference == pending_card_intent.reference
        assert event.amount_minor == 500000


@pytest.mark.django_db
class TestRunWebhook:
    def test_processed(self, pending_card_intent):
        webhook = WebhookEventFactory(reference=pending_card_intent.reference)

        result = run_webhook(webhook)

        assert result.success
        assert webhook.status == WebhookEventStatus.PROCESSED
        assert webhook.processed_at is not None
        assert PaymentIntent.objects.get(pk=pending_card_intent.pk).status == PaymentIntentStatus.SUCCESS

    def test_already_processed_is_noop(self, pending_webhook):
        pending_webhook.mark_processing()
        pending_webhook.mark_processed()
        pending_webhook.save()

        with patch("payments.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            result = run_webhook(pending_webhook)

        assert result.data == {"status": "already_processed"}
        mock_dispatch.assert_not_called()

    def test_handler_failure_marks_event_failed(self, pending_webhook):
        result = run_webhook(pending_webhook)

        assert not result.success
        pending_webhook.refresh_from_db()
        assert pending_webhook.status == WebhookEventStatus.FAILED
        assert pending_webhook.retry_count == 1
        assert pending_webhook.error_message

    def test_exception_recorded_and_reraised(self, pending_webhook, scratch_handler):
        def exploding(webhook_event):
            raise RuntimeError("boom")

        scratch_handler("test.explode", exploding)
        pending_webhook.event_type = "test.explode"
        pending_webhook.save(update_fields=["event_type"])

        with pytest.raises(RuntimeError):
            run_webhook(pending_webhook)

        pending_webhook.refresh_from_db()
        assert pending_webhook.status == WebhookEventStatus.FAILED
        assert pending_webhook.error_message == "RuntimeError: boom"

    def test_failed_event_can_be_rerun(self, failed_webhook, pending_card_intent):
        failed_webhook.reference = pending_card_intent.reference
        failed_webhook.payload["data"]["reference"] = pending_card_intent.reference
        failed_webhook.save(update_fields=["reference", "payload"])

        result = run_webhook(failed_webhook)

        assert result.success
        assert failed_webhook.status == WebhookEventStatus.PROCESSED
