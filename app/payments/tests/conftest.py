"""
Pytest fixtures for payment tests.

Fixtures provide users with funded wallets, intents in each state, a fake
card gateway, and an orchestrator wired to that fake.

Usage:
    def test_wallet_checkout(orchestrator, buyer, seller):
        result = orchestrator.pay_by_wallet(make_params(buyer, seller))
        assert result.success
"""

from decimal import Decimal

import pytest

from accounts.tests.factories import UserFactory
from payments.adapters import GatewayAdapter, GatewaySession, generate_reference
from payments.exceptions import GatewayUnavailableError
from payments.services import CartItem, CartPaymentParams, PaymentOrchestrator
from payments.state_machines import PaymentMethod, PaymentPurpose
from payments.tests.factories import PaymentIntentFactory, WebhookEventFactory, cart_snapshot


# =============================================================================
# Fake Gateway
# =============================================================================


class FakeGateway(GatewayAdapter):
    """
    In-memory card gateway.

    Records every initialize() call; set ``fail_with`` to make gateway
    calls raise. verify_transaction() answers from ``transactions``.
    """

    def __init__(self):
        self.initialized = []
        self.fail_with = None
        self.transactions = {}

    def initialize(self, params):
        if self.fail_with is not None:
            raise self.fail_with
        self.initialized.append(params)
        return GatewaySession(
            authorization_url=f"https://checkout.example.com/{params.reference}",
            access_code=f"access-{params.reference}",
            reference=params.reference,
        )

    def verify_transaction(self, reference):
        if self.fail_with is not None:
            raise self.fail_with
        return self.transactions[reference]

    def verify_callback(self, raw_body, signature):
        raise NotImplementedError


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def buyer(db):
    """Buyer with 10,000 in the wallet."""
    return UserFactory(wallet_balance=Decimal("10000.00"))


@pytest.fixture
def seller(db):
    return UserFactory()


@pytest.fixture
def broke_buyer(db):
    return UserFactory(wallet_balance=Decimal("0.00"))


# =============================================================================
# Orchestrator
# =============================================================================


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def unavailable_gateway():
    fake = FakeGateway()
    fake.fail_with = GatewayUnavailableError("Payment gateway timed out. Please retry.")
    return fake


@pytest.fixture
def orchestrator(gateway):
    """Orchestrator with the real ledger and repository and a fake gateway."""
    return PaymentOrchestrator(gateway=gateway)


@pytest.fixture
def make_params():
    """
    Build CartPaymentParams for a self-arranged cart priced at 5,000.

    Self-arranged carts carry no service fee, so total == items total.
    """

    def _make(user, seller, **overrides):
        items = overrides.pop(
            "items",
            [CartItem(product_id="prod-1", seller_id=str(seller.pk), price=Decimal("5000.00"))],
        )
        defaults = {
            "user": user,
            "items": items,
            "total_amount": Decimal("5000.00"),
            "shipping_method": "self-arranged",
            "verification_level": "self-arranged",
        }
        defaults.update(overrides)
        return CartPaymentParams(**defaults)

    return _make


# =============================================================================
# Intents
# =============================================================================


@pytest.fixture
def pending_card_intent(db, buyer, seller):
    """Pending card intent for a 5,000 self-arranged cart."""
    return PaymentIntentFactory(
        user=buyer,
        amount=Decimal("5000.00"),
        metadata={"cart": cart_snapshot(seller, service_fee="0")},
    )


@pytest.fixture
def pending_hybrid_intent(db, buyer, seller):
    """Hybrid intent: 4,000 from the wallet, 1,000 on the card."""
    return PaymentIntentFactory(
        user=buyer,
        amount=Decimal("1000.00"),
        wallet_portion=Decimal("4000.00"),
        method=PaymentMethod.HYBRID,
        purpose=PaymentPurpose.HYBRID_PAYMENT,
        metadata={"cart": cart_snapshot(seller, service_fee="0")},
    )


@pytest.fixture
def pending_funding_intent(db, buyer):
    """Card top-up of 2,500 for the buyer's wallet."""
    return PaymentIntentFactory(
        reference=generate_reference("FUND"),
        user=buyer,
        amount=Decimal("2500.00"),
        purpose=PaymentPurpose.WALLET_FUNDING,
    )


@pytest.fixture
def successful_intent(pending_card_intent):
    pending_card_intent.mark_success(gateway_response={"event": "charge.success"})
    pending_card_intent.save()
    return pending_card_intent


@pytest.fixture
def failed_intent(pending_card_intent):
    pending_card_intent.mark_failed(reason="Declined")
    pending_card_intent.save()
    return pending_card_intent


# =============================================================================
# Webhook Events
# =============================================================================


@pytest.fixture
def pending_webhook(db):
    return WebhookEventFactory()


@pytest.fixture
def failed_webhook(db):
    webhook = WebhookEventFactory()
    webhook.mark_processing()
    webhook.mark_failed("Processing error: test failure")
    webhook.save()
    return webhook
