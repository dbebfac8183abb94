"""
Order state definitions.

OrderStatus:
    PAID -> SHIPPED -> DELIVERED
    PAID -> CANCELLED (admin, while in escrow)

EscrowState:
    IN_ESCROW -> RELEASED (terminal)
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PAID = "paid", "Paid"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class EscrowState(models.TextChoices):
    """Whether the seller's proceeds are still held."""

    IN_ESCROW = "in_escrow", "In Escrow"
    RELEASED = "released", "Released"


class EscrowReleaseVia(models.TextChoices):
    """How escrow was released."""

    CONFIRMED = "confirmed", "Buyer Confirmed"
    TIMED_OUT = "timed_out", "Inspection Period Expired"
    NOT_HELD = "not_held", "Not Held"


class ShippingMethod(models.TextChoices):
    SELF_ARRANGED = "self-arranged", "Self-arranged"
    CARRIER = "carrier", "Carrier"


class VerificationLevel(models.TextChoices):
    SELF_ARRANGED = "self-arranged", "Self-arranged"
    BASIC = "basic", "Basic"
    PREMIUM = "premium", "Premium"


class ShipmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    DISPATCHED = "dispatched", "Dispatched"
    FAILED = "failed", "Failed"


__all__ = [
    "OrderStatus",
    "EscrowState",
    "EscrowReleaseVia",
    "ShippingMethod",
    "VerificationLevel",
    "ShipmentStatus",
]
