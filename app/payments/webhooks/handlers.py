"""
Gateway webhook handlers.

Handlers are registered per event type and receive the stored
WebhookEvent. They normalize the payload into a GatewayEvent and hand it to
the PaymentOrchestrator, which owns all payment state changes.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("refund.processed")
    def handle_refund_processed(webhook_event: WebhookEvent) -> ServiceResult:
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult

from payments.adapters import PaystackAdapter
from payments.state_machines import WebhookEventStatus

if TYPE_CHECKING:
    from payments.models import WebhookEvent
    from payments.services import PaymentOrchestrator


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================

WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """Decorator to register a webhook event handler."""

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def get_orchestrator() -> PaymentOrchestrator:
    from payments.services import PaymentOrchestrator

    return PaymentOrchestrator()


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Route a webhook event to its handler.

    Unknown event types succeed so the gateway stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)
    if handler is None:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_key": webhook_event.event_key},
        )
        return ServiceResult.success({"status": "ignored"})
    return handler(webhook_event)


def run_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Process a stored webhook event and record the outcome on it.

    Shared by the webhook view and the retry task. Exceptions are recorded
    on the event and re-raised.
    """
    if webhook_event.status == WebhookEventStatus.PROCESSED:
        return ServiceResult.success({"status": "already_processed"})

    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])
    else:
        webhook_event.mark_failed(result.error or "Handler returned failure")
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.warning(
            f"Webhook handler failed: {result.error}",
            extra={"event_key": webhook_event.event_key, "error_code": result.error_code},
        )
    return result


# =============================================================================
# Charge Handlers
# =============================================================================


def _apply_charge_event(webhook_event: WebhookEvent) -> ServiceResult:
    event = PaystackAdapter().parse_event(webhook_event.payload)
    return get_orchestrator().on_gateway_event(event)


@register_handler("charge.success")
def handle_charge_success(webhook_event: WebhookEvent) -> ServiceResult:
    """Funds captured: create orders (and debit the hybrid wallet leg)."""
    return _apply_charge_event(webhook_event)


@register_handler("charge.failed")
def handle_charge_failed(webhook_event: WebhookEvent) -> ServiceResult:
    return _apply_charge_event(webhook_event)
