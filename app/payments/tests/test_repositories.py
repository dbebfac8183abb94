"""
Tests for PaymentIntentRepository.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from payments.exceptions import InvalidStateTransitionError, PaymentIntentNotFoundError
from payments.fees import ShippingTier, calculate_fees
from payments.models import PaymentIntent
from payments.repositories import PaymentIntentRepository
from payments.state_machines import PaymentIntentStatus, PaymentMethod, PaymentPurpose
from payments.tests.factories import PaymentIntentFactory


@pytest.fixture
def repository():
    return PaymentIntentRepository()


@pytest.fixture
def breakdown():
    return calculate_fees(
        Decimal("40000"), ShippingTier.BASIC_DELIVERY, shipping_fee=Decimal("1500")
    )


@pytest.mark.django_db
class TestCreate:
    def test_create_pending_copies_fee_breakdown(self, repository, buyer, breakdown):
        intent = repository.create_pending(
            reference="CART-1",
            user_id=buyer.pk,
            amount=breakdown.total_amount,
            method=PaymentMethod.CARD,
            purpose=PaymentPurpose.CART_PAYMENT,
            breakdown=breakdown,
            metadata={"cart": {"items": []}},
        )

        assert intent.status == PaymentIntentStatus.PENDING
        assert intent.amount == Decimal("41500")
        assert intent.service_fee_amount == Decimal("1000")
        assert intent.shipping_fee_amount == Decimal("1500")
        assert intent.metadata == {"cart": {"items": []}}

    def test_create_success(self, repository, buyer, breakdown):
        intent = repository.create_success(
            reference="WALLET-CART-1",
            user_id=buyer.pk,
            amount=breakdown.total_amount,
            method=PaymentMethod.WALLET,
            purpose=PaymentPurpose.CART_PAYMENT,
            breakdown=breakdown,
        )

        stored = PaymentIntent.objects.get(reference="WALLET-CART-1")
        assert intent.is_successful
        assert stored.status == PaymentIntentStatus.SUCCESS
        assert stored.paid_at is not None


@pytest.mark.django_db
class TestLookups:
    def test_get(self, repository, pending_card_intent):
        assert repository.get(pending_card_intent.reference).pk == pending_card_intent.pk

    def test_get_unknown(self, repository):
        with pytest.raises(PaymentIntentNotFoundError):
            repository.get("CART-missing")

    def test_get_for_update_unknown(self, repository):
        with pytest.raises(PaymentIntentNotFoundError):
            repository.get_for_update("CART-missing")


@pytest.mark.django_db
class TestTransitions:
    def test_mark_success_twice_is_rejected(self, repository, successful_intent):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            repository.mark_success(successful_intent)

        assert exc_info.value.details["current_state"] == PaymentIntentStatus.SUCCESS

    def test_mark_failed_persists(self, repository, pending_card_intent):
        repository.mark_failed(pending_card_intent, reason="Declined")

        stored = PaymentIntent.objects.get(pk=pending_card_intent.pk)
        assert stored.status == PaymentIntentStatus.FAILED
        assert stored.failure_reason == "Declined"

    def test_flag_reconciliation(self, repository, successful_intent):
        with patch("payments.repositories.logger") as mock_logger:
            repository.flag_reconciliation(successful_intent, "Wallet short by 500")

        stored = PaymentIntent.objects.get(pk=successful_intent.pk)
        assert stored.requires_reconciliation
        assert stored.reconciliation_note == "Wallet short by 500"
        mock_logger.critical.assert_called_once()
        assert mock_logger.critical.call_args.kwargs["extra"]["reconciliation_required"] is True


@pytest.mark.django_db
class TestStaleIntents:
    def _age(self, intent, hours):
        PaymentIntent.objects.filter(pk=intent.pk).update(
            created_at=timezone.now() - timedelta(hours=hours)
        )

    def test_stale_pending_skips_wallet_and_recent(self, repository, buyer):
        old_card = PaymentIntentFactory(user=buyer)
        recent_card = PaymentIntentFactory(user=buyer)
        old_wallet = PaymentIntentFactory(user=buyer, method=PaymentMethod.WALLET)
        self._age(old_card, 50)
        self._age(old_wallet, 50)

        stale = repository.stale_pending(older_than=timezone.now() - timedelta(hours=48))

        assert [intent.pk for intent in stale] == [old_card.pk]
        assert recent_card.pk not in [intent.pk for intent in stale]

    def test_expire_pending(self, repository, pending_card_intent):
        assert repository.expire(pending_card_intent.id, reason="abandoned") is True

        stored = PaymentIntent.objects.get(pk=pending_card_intent.pk)
        assert stored.status == PaymentIntentStatus.FAILED

    def test_expire_skips_confirmed(self, repository, successful_intent):
        assert repository.expire(successful_intent.id, reason="abandoned") is False

        stored = PaymentIntent.objects.get(pk=successful_intent.pk)
        assert stored.status == PaymentIntentStatus.SUCCESS
