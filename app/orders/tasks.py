"""
Celery tasks for carrier shipment dispatch.

Shipping is best-effort once payment is secured: these tasks only ever
touch ShipmentRequest rows and the order's carrier fields, never payment
or escrow state.

Usage:
    from orders.tasks import dispatch_shipment

    dispatch_shipment.delay(str(shipment_request.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from orders.exceptions import ShippingDispatchError
from orders.models import Order, ShipmentRequest
from orders.shipping import ShipmentSpec, get_dispatcher
from orders.states import ShipmentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BATCH_SIZE = 100

# Requests never attempted (e.g. the on_commit enqueue was lost) are picked
# up by the sweep after this long.
UNATTEMPTED_GRACE_MINUTES = 10

MAX_BACKOFF_MINUTES = 60

# A claimed request is not due again until this lease runs out, so a
# worker that dies mid-dispatch is retried by the sweep.
CLAIM_LEASE_MINUTES = 15


# =============================================================================
# Dispatch
# =============================================================================


@shared_task(bind=True, acks_late=True)
def dispatch_shipment(self, shipment_request_id: str) -> dict:
    """
    Create the carrier shipment for one ShipmentRequest.

    Failures are recorded on the request and retried by
    retry_pending_shipments; this task does not raise for carrier errors.

    Returns:
        Dict with status: dispatched, already_dispatched, abandoned,
        not_due, retry_scheduled, failed or not_found
    """
    if isinstance(shipment_request_id, str):
        shipment_request_id = UUID(shipment_request_id)

    shipment, skipped = _claim(shipment_request_id)
    if shipment is None:
        return {"status": skipped, "shipment_request_id": str(shipment_request_id)}

    try:
        result = get_dispatcher().create_shipment(ShipmentSpec.from_payload(shipment.payload))
    except ShippingDispatchError as e:
        return _record_failure(shipment, e.message, retryable=e.is_retryable)
    except ValueError as e:
        return _record_failure(shipment, str(e), retryable=False)

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=shipment.order_id)
        order.shipment_id = result.shipment_id
        order.tracking_code = result.tracking_code
        order.tracking_url = result.tracking_url
        order.save(update_fields=["shipment_id", "tracking_code", "tracking_url", "updated_at"])

        shipment.status = ShipmentStatus.DISPATCHED
        shipment.attempts += 1
        shipment.dispatched_at = timezone.now()
        shipment.next_attempt_at = None
        shipment.last_error = ""
        shipment.save()

    logger.info(
        "Shipment dispatched",
        extra={
            "order_id": str(order.id),
            "shipment_id": result.shipment_id,
            "attempts": shipment.attempts,
        },
    )
    return {
        "status": "dispatched",
        "shipment_request_id": str(shipment.id),
        "shipment_id": result.shipment_id,
    }


def _claim(shipment_request_id: UUID) -> tuple[ShipmentRequest | None, str]:
    """
    Lease a pending request to this worker before calling the carrier.

    Returns the claimed request, or None and the reason it was skipped.
    A row locked by another worker, or whose next_attempt_at is still in
    the future, belongs to someone else (or is backing off).
    """
    now = timezone.now()
    with transaction.atomic():
        shipment = (
            ShipmentRequest.objects.select_for_update(skip_locked=True)
            .filter(pk=shipment_request_id)
            .first()
        )
        if shipment is None:
            if ShipmentRequest.objects.filter(pk=shipment_request_id).exists():
                return None, "not_due"
            logger.warning(
                "ShipmentRequest not found",
                extra={"shipment_request_id": str(shipment_request_id)},
            )
            return None, "not_found"

        if shipment.is_dispatched:
            return None, "already_dispatched"
        if shipment.status == ShipmentStatus.FAILED:
            return None, "abandoned"
        if shipment.next_attempt_at is not None and shipment.next_attempt_at > now:
            logger.info(
                "Shipment request not due, skipping",
                extra={
                    "shipment_request_id": str(shipment.id),
                    "next_attempt_at": shipment.next_attempt_at.isoformat(),
                },
            )
            return None, "not_due"

        shipment.next_attempt_at = now + timedelta(minutes=CLAIM_LEASE_MINUTES)
        shipment.save(update_fields=["next_attempt_at", "updated_at"])
    return shipment, ""


def _record_failure(shipment: ShipmentRequest, error: str, retryable: bool) -> dict:
    shipment.attempts += 1
    shipment.last_error = error

    if not retryable or shipment.attempts >= settings.SHIPMENT_MAX_ATTEMPTS:
        shipment.status = ShipmentStatus.FAILED
        shipment.next_attempt_at = None
        shipment.save()
        logger.error(
            "Shipment dispatch abandoned; arrange delivery manually",
            extra={
                "order_id": str(shipment.order_id),
                "attempts": shipment.attempts,
                "error": error,
            },
        )
        return {"status": "failed", "shipment_request_id": str(shipment.id), "error": error}

    backoff = min(2**shipment.attempts, MAX_BACKOFF_MINUTES)
    shipment.next_attempt_at = timezone.now() + timedelta(minutes=backoff)
    shipment.save()
    logger.warning(
        "Shipment dispatch failed, retry scheduled",
        extra={
            "order_id": str(shipment.order_id),
            "attempts": shipment.attempts,
            "next_attempt_at": shipment.next_attempt_at.isoformat(),
            "error": error,
        },
    )
    return {"status": "retry_scheduled", "shipment_request_id": str(shipment.id), "error": error}


# =============================================================================
# Periodic Sweep
# =============================================================================


@shared_task
def retry_pending_shipments() -> dict:
    """
    Re-queue pending shipment requests that are due.

    Rows being claimed by a dispatch right now are skipped; claimed rows
    are not due until their lease runs out.
    """
    now = timezone.now()
    due = (
        ShipmentRequest.objects.select_for_update(skip_locked=True)
        .filter(
            status=ShipmentStatus.PENDING,
            attempts__lt=settings.SHIPMENT_MAX_ATTEMPTS,
        )
        .filter(
            Q(next_attempt_at__lte=now)
            | Q(
                next_attempt_at__isnull=True,
                created_at__lt=now - timedelta(minutes=UNATTEMPTED_GRACE_MINUTES),
            )
        )
        .order_by("created_at")[:BATCH_SIZE]
    )

    with transaction.atomic():
        due_ids = [str(pk) for pk in due.values_list("id", flat=True)]

    queued_count = 0
    for shipment_request_id in due_ids:
        dispatch_shipment.delay(shipment_request_id)
        queued_count += 1

    if queued_count:
        logger.info(
            f"Queued {queued_count} shipments for dispatch",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}
