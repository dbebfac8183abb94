"""
Pytest fixtures for order and escrow tests.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from accounts.tests.factories import UserFactory
from orders.models import Order
from orders.services import EscrowManager
from orders.tests.factories import OrderModelFactory


@pytest.fixture
def buyer(db):
    return UserFactory(wallet_balance=Decimal("10000.00"))


@pytest.fixture
def seller(db):
    return UserFactory()


@pytest.fixture
def stranger(db):
    return UserFactory()


@pytest.fixture
def escrow_manager():
    return EscrowManager()


@pytest.fixture
def order(buyer, seller) -> Order:
    """Order in escrow: 5,000 item, 125 service fee, seller receives 4,875."""
    return OrderModelFactory(buyer=buyer, seller=seller)


@pytest.fixture
def expired_order(buyer, seller) -> Order:
    """Order whose 72h inspection period ended an hour ago."""
    return OrderModelFactory(
        buyer=buyer,
        seller=seller,
        paid_at=timezone.now() - timedelta(hours=73),
        inspection_deadline=timezone.now() - timedelta(hours=1),
    )


def fresh(order: Order) -> Order:
    """Re-read an order; FSM-protected fields rule out refresh_from_db."""
    return Order.objects.get(pk=order.pk)
