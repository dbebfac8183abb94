"""
State and choice enums for payment models.

These are Django TextChoices for database storage and admin integration;
the status fields that change over time are django-fsm FSMFields.

State Machines Overview:

PaymentIntent Status:
    pending → success   (funds confirmed; happens at most once per reference)
    pending → failed    (gateway failure, underpayment, abandoned checkout)

WebhookEvent Status:
    pending → processing → processed
    pending → processing → failed (retried by the webhook retry sweep)
"""

from django.db import models


class PaymentIntentStatus(models.TextChoices):
    """
    Lifecycle of a single payment attempt.

    SUCCESS and FAILED are terminal. Only PENDING intents can transition,
    which is what makes duplicate webhook deliveries harmless.
    """

    PENDING = "pending", "Pending"
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"


class PaymentMethod(models.TextChoices):
    """How the buyer funds a checkout."""

    WALLET = "wallet", "Wallet"
    CARD = "card", "Card"
    HYBRID = "hybrid", "Wallet + Card"


class PaymentPurpose(models.TextChoices):
    """
    What a payment intent pays for.

    Only cart and hybrid payments create orders; wallet funding credits the
    payer's wallet. Swap and advertisement payments are recorded for
    completeness of the payment log.
    """

    CART_PAYMENT = "cart_payment", "Cart Payment"
    HYBRID_PAYMENT = "hybrid_payment", "Hybrid Payment"
    WALLET_FUNDING = "wallet_funding", "Wallet Funding"
    SWAP_PAYMENT = "swap_payment", "Swap Payment"
    ADVERTISEMENT_PAYMENT = "advertisement_payment", "Advertisement Payment"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "PaymentIntentStatus",
    "PaymentMethod",
    "PaymentPurpose",
    "WebhookEventStatus",
]
