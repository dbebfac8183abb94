"""
WebhookEvent model for gateway webhook deliveries.

Every signed delivery from the card gateway is stored with its raw payload
for audit and retry. Gateway events carry no unique event id, so deliveries
are keyed by "{event}:{reference}"; a redelivery of the same event for the
same payment maps onto the same row.

Exactly-once order creation does not depend on this table: the payment
intent's status, checked under a row lock, is the idempotency boundary.
This table is what the retry sweep uses to re-run failed deliveries.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks gateway webhook deliveries.

    Processing Flow:
        1. Verify signature over the raw body
        2. get_or_create WebhookEvent by event_key
        3. If PROCESSED -> return 200 (duplicate)
        4. mark_processing, dispatch to handler
        5. mark_processed or mark_failed
        6. Failed events are picked up by retry_failed_webhooks
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    event_key = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="'{event}:{reference}' - unique per gateway event",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'charge.success')",
    )

    reference = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
        help_text="Payment reference the event refers to",
    )

    payload = models.JSONField(
        help_text="Full webhook payload from the gateway",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_we_status_3a9c71_idx"),
            models.Index(fields=["status", "retry_count"], name="payments_we_status_c04e2b_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_key})"

    @staticmethod
    def build_key(event_type: str, reference: str) -> str:
        return f"{event_type}:{reference}"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < settings.WEBHOOK_MAX_RETRIES
        )

    # Helpers below do not save; the caller saves.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
