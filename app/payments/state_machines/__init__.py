"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    PaymentIntentStatus,
    PaymentMethod,
    PaymentPurpose,
    WebhookEventStatus,
)

__all__ = [
    "PaymentIntentStatus",
    "PaymentMethod",
    "PaymentPurpose",
    "WebhookEventStatus",
]
