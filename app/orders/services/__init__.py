"""
Order services.

Usage:
    from orders.services import OrderFactory, EscrowManager
"""

from orders.services.escrow_manager import EscrowManager, EscrowStatus
from orders.services.order_factory import OrderFactory

__all__ = ["EscrowManager", "EscrowStatus", "OrderFactory"]
