"""
PaymentIntent repository.

The orchestrator and tasks reach payment intents only through this class,
so tests can substitute an in-memory fake and every status change goes
through the FSM transitions on the model.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from payments.exceptions import InvalidStateTransitionError, PaymentIntentNotFoundError
from payments.models import PaymentIntent
from payments.state_machines import PaymentIntentStatus

if TYPE_CHECKING:
    from payments.fees import FeeBreakdown

logger = logging.getLogger(__name__)


class PaymentIntentRepository:
    """Persistence for the payment log."""

    def create_pending(
        self,
        reference: str,
        user_id: uuid.UUID,
        amount: Decimal,
        method: str,
        purpose: str,
        breakdown: FeeBreakdown,
        wallet_portion: Decimal = Decimal("0"),
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent:
        """Record a payment awaiting gateway confirmation."""
        return PaymentIntent.objects.create(
            reference=reference,
            user_id=user_id,
            amount=amount,
            method=method,
            purpose=purpose,
            service_fee_amount=breakdown.service_fee,
            shipping_fee_amount=breakdown.shipping_fee,
            insurance_fee_amount=breakdown.insurance_fee,
            wallet_portion=wallet_portion,
            metadata=metadata or {},
        )

    def create_success(
        self,
        reference: str,
        user_id: uuid.UUID,
        amount: Decimal,
        method: str,
        purpose: str,
        breakdown: FeeBreakdown,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent:
        """Record a payment whose funds are already secured (wallet path)."""
        intent = self.create_pending(
            reference=reference,
            user_id=user_id,
            amount=amount,
            method=method,
            purpose=purpose,
            breakdown=breakdown,
            metadata=metadata,
        )
        return self.mark_success(intent)

    def get(self, reference: str) -> PaymentIntent:
        try:
            return PaymentIntent.objects.get(reference=reference)
        except PaymentIntent.DoesNotExist:
            raise PaymentIntentNotFoundError(
                f"No payment found for reference {reference}",
                details={"reference": reference},
            )

    def get_for_update(self, reference: str) -> PaymentIntent:
        """
        Lock the intent row for the rest of the current transaction.

        Must be called inside transaction.atomic().
        """
        try:
            return PaymentIntent.objects.select_for_update().get(reference=reference)
        except PaymentIntent.DoesNotExist:
            raise PaymentIntentNotFoundError(
                f"No payment found for reference {reference}",
                details={"reference": reference},
            )

    def mark_success(
        self, intent: PaymentIntent, gateway_response: dict[str, Any] | None = None
    ) -> PaymentIntent:
        try:
            intent.mark_success(gateway_response=gateway_response)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot mark payment {intent.reference} successful from '{intent.status}'",
                details={"current_state": intent.status, "transition": "mark_success"},
            )
        intent.save()
        return intent

    def mark_failed(self, intent: PaymentIntent, reason: str = "") -> PaymentIntent:
        try:
            intent.mark_failed(reason=reason)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot mark payment {intent.reference} failed from '{intent.status}'",
                details={"current_state": intent.status, "transition": "mark_failed"},
            )
        intent.save()
        return intent

    def flag_reconciliation(self, intent: PaymentIntent, note: str) -> PaymentIntent:
        """
        Flag an intent whose money movement and records disagree.

        Logged at CRITICAL so alerting picks it up; the flag is what the
        admin filters on.
        """
        intent.requires_reconciliation = True
        intent.reconciliation_note = note
        intent.save(update_fields=["requires_reconciliation", "reconciliation_note", "updated_at"])
        logger.critical(
            "Payment requires reconciliation",
            extra={
                "reconciliation_required": True,
                "reference": intent.reference,
                "status": intent.status,
                "note": note,
            },
        )
        return intent

    def add_reconciliation_note(self, intent: PaymentIntent, note: str) -> PaymentIntent:
        """Append a line to the reconciliation note without changing the flag."""
        stamp = timezone.now().strftime("%Y-%m-%d %H:%M")
        lines = [intent.reconciliation_note, f"[{stamp}] {note}"]
        intent.reconciliation_note = "\n".join(line for line in lines if line)
        intent.save(update_fields=["reconciliation_note", "updated_at"])
        return intent

    def stale_pending(self, older_than, limit: int = 100) -> list[PaymentIntent]:
        """Card/hybrid intents still pending before older_than."""
        return list(
            PaymentIntent.objects.filter(
                status=PaymentIntentStatus.PENDING,
                created_at__lt=older_than,
            )
            .exclude(method="wallet")
            .order_by("created_at")[:limit]
        )

    def expire(self, intent_id: uuid.UUID, reason: str) -> bool:
        """
        Fail one stale intent under a row lock.

        Returns False if the intent left PENDING in the meantime (a late
        webhook won the race).
        """
        with transaction.atomic():
            intent = PaymentIntent.objects.select_for_update().get(pk=intent_id)
            if intent.status != PaymentIntentStatus.PENDING:
                return False
            self.mark_failed(intent, reason=reason)
            return True
