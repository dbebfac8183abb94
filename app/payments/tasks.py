"""
Celery tasks for payment processing.

This module provides async tasks for:
- Re-running a stored gateway webhook event
- Retrying failed webhook events (celery-beat)
- Failing card/hybrid intents the buyer abandoned (celery-beat)

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event_id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.models import WebhookEvent
from payments.repositories import PaymentIntentRepository
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BATCH_SIZE = 100
STALE_INTENT_REASON = "Checkout abandoned: no gateway confirmation received"


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Re-run a stored webhook event.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    from payments.webhooks.handlers import run_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    result = run_webhook(webhook_event)
    if result.success:
        logger.info(
            "Webhook processed on retry",
            extra={"event_key": webhook_event.event_key, "retry_count": webhook_event.retry_count},
        )
        return {"status": "processed", "webhook_event_id": str(webhook_event_id)}

    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event_id),
        "error": result.error,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Only events below WEBHOOK_MAX_RETRIES attempts are re-queued.
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1

    if queued_count:
        logger.info(
            f"Queued {queued_count} failed webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


# =============================================================================
# Stale Intent Sweep
# =============================================================================


@shared_task
def expire_stale_intents(hours: int | None = None) -> dict:
    """
    Fail card/hybrid intents left pending past the threshold.

    Nothing was debited for these, so no money moves. A late charge.success
    for an expired intent is flagged for reconciliation by the orchestrator.
    """
    hours = hours if hours is not None else settings.PAYMENT_INTENT_STALE_HOURS
    cutoff = timezone.now() - timedelta(hours=hours)
    repository = PaymentIntentRepository()

    expired = 0
    skipped = 0
    for intent in repository.stale_pending(older_than=cutoff, limit=BATCH_SIZE):
        if repository.expire(intent.id, reason=STALE_INTENT_REASON):
            expired += 1
        else:
            skipped += 1

    if expired:
        logger.info(
            f"Expired {expired} stale payment intents",
            extra={"expired": expired, "skipped": skipped, "cutoff": cutoff.isoformat()},
        )
    return {"expired": expired, "skipped": skipped}
