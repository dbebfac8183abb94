"""
Webhook endpoint for the card gateway.

Deliveries are processed synchronously: the response code tells the
gateway whether to redeliver. A WebhookEvent row is kept per delivery for
audit and for the retry sweep.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhook/gateway", gateway_webhook, name="gateway-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import PaystackAdapter
from payments.exceptions import GatewaySignatureInvalid, PaymentValidationError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import run_webhook


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def gateway_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and apply a gateway webhook.

    The signature is checked over the exact raw body before anything is
    parsed.

    Returns:
        HttpResponse with status:
        - 200: Processed, duplicate, or nothing to do
        - 400: Signed but malformed payload
        - 401: Missing or invalid signature
        - 500: Processing failed; the gateway will redeliver
    """
    raw_body = request.body
    signature = request.headers.get("X-Signature") or request.headers.get("X-Paystack-Signature")
    adapter = PaystackAdapter()

    try:
        payload = adapter.verify_callback(raw_body, signature)
        event = adapter.parse_event(payload)
    except GatewaySignatureInvalid as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": e.message, "remote_addr": request.META.get("REMOTE_ADDR")},
        )
        return HttpResponse("Invalid signature", status=401)
    except PaymentValidationError as e:
        logger.warning("Webhook payload rejected", extra={"error": e.message})
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received gateway webhook: {event.event}",
        extra={"event_type": event.event, "reference": event.reference},
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_key=WebhookEvent.build_key(event.event, event.reference),
        defaults={
            "event_type": event.event,
            "reference": event.reference,
            "payload": payload,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"event_key": webhook_event.event_key},
        )
        return HttpResponse("Already processed", status=200)

    try:
        result = run_webhook(webhook_event)
    except Exception:
        logger.exception(
            "Webhook processing failed",
            extra={"event_key": webhook_event.event_key, "reference": event.reference},
        )
        return HttpResponse("Processing failed", status=500)

    if not result.success:
        # Nothing a redelivery could fix (e.g. unknown reference).
        return HttpResponse(result.error or "Not processed", status=200)

    return HttpResponse("OK", status=200)
