"""
Carrier shipping boundary.

Usage:
    from orders.shipping import ShipmentSpec, get_dispatcher

    result = get_dispatcher().create_shipment(ShipmentSpec.from_payload(payload))
"""

from orders.shipping.base import (
    DEFAULT_PACKAGE,
    ShipmentResult,
    ShipmentSpec,
    ShippingDispatcher,
)
from orders.shipping.shipbubble import ShipbubbleDispatcher, get_dispatcher

__all__ = [
    "DEFAULT_PACKAGE",
    "ShipmentResult",
    "ShipmentSpec",
    "ShippingDispatcher",
    "ShipbubbleDispatcher",
    "get_dispatcher",
]
