"""
Pytest fixtures for webhook tests.

Reuses the payment fixtures (users, intents, webhook events) and adds
helpers for building signed gateway deliveries.
"""

import json

import pytest

from payments.adapters import PaystackAdapter
from payments.tests.conftest import (  # noqa: F401
    buyer,
    failed_intent,
    failed_webhook,
    pending_card_intent,
    pending_hybrid_intent,
    pending_webhook,
    seller,
    successful_intent,
)


@pytest.fixture
def signed_delivery():
    """
    Build (raw_body, signature) for a gateway event.

    Usage:
        body, signature = signed_delivery("charge.success", intent.reference, 500000)
    """

    def _build(event: str, reference: str, amount: int | None = None, **data):
        payload = {"event": event, "data": {"reference": reference, **data}}
        if amount is not None:
            payload["data"]["amount"] = amount
        body = json.dumps(payload).encode()
        return body, PaystackAdapter().sign(body)

    return _build
