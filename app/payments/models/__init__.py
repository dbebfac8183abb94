"""
Payment domain models.

- PaymentIntent: Payment log, one row per payment attempt
- WebhookEvent: Gateway webhook deliveries for audit and retry
- WalletTransaction: Append-only record of every wallet mutation
"""

from payments.models.payment_intent import PaymentIntent
from payments.models.webhook_event import WebhookEvent
from payments.wallet.models import WalletTransaction

__all__ = [
    "PaymentIntent",
    "WalletTransaction",
    "WebhookEvent",
]
