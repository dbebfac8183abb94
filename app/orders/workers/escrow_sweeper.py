"""
Escrow sweeper for orders whose inspection period has ended.

Tasks:
- process_expired_escrows: Periodic scan (every 15 minutes) that queues
  one release task per expired order
- release_expired_escrow: Releases a single order to its seller

Usage:
    from orders.workers import process_expired_escrows

    process_expired_escrows.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from orders.services import EscrowManager

logger = logging.getLogger(__name__)


BATCH_SIZE = 100

RESULT_STATUS = {
    "ESCROW_ALREADY_RELEASED": "already_released",
    "ESCROW_NOT_EXPIRED": "not_expired",
    "ESCROW_NOT_ELIGIBLE": "not_eligible",
    "ORDER_NOT_FOUND": "not_found",
}


@shared_task(bind=True)
def process_expired_escrows(self) -> dict:
    """
    Scan for expired escrows and queue release tasks.

    Idempotent: release_expired_escrow re-checks state under a row lock,
    so overlapping scans cannot pay a seller twice.
    """
    expired = EscrowManager().find_expired(limit=BATCH_SIZE)

    queued_count = 0
    for order in expired:
        release_expired_escrow.delay(str(order.id))
        queued_count += 1

    logger.info(
        f"Expired escrow scan complete: queued {queued_count} orders",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count}


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def release_expired_escrow(self, order_id: str) -> dict:
    """
    Release one expired escrow.

    Returns:
        Dict with status: released, already_released, not_expired,
        not_eligible, not_found or release_failed

    Raises:
        Exception: Unexpected errors (e.g. database) are re-raised for retry
    """
    result = EscrowManager().release_expired(order_id)

    if result.success:
        return {"status": "released", "order_id": str(order_id)}

    status = RESULT_STATUS.get(result.error_code, "release_failed")
    logger.info(
        f"Escrow not released: {result.error}",
        extra={"order_id": str(order_id), "error_code": result.error_code},
    )
    return {"status": status, "order_id": str(order_id), "error_code": result.error_code}
