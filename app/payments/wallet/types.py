"""
Choice enums for wallet transactions.
"""

from django.db import models


class WalletDirection(models.TextChoices):
    DEBIT = "debit", "Debit"
    CREDIT = "credit", "Credit"


class WalletTransactionKind(models.TextChoices):
    """
    Why the wallet moved.

    PAYMENT is a buyer debit for a checkout, ESCROW_RELEASE a seller
    payout, REFUND and TOPUP are credits initiated outside checkout.
    """

    PAYMENT = "payment", "Payment"
    ESCROW_RELEASE = "escrow_release", "Escrow Release"
    REFUND = "refund", "Refund"
    TOPUP = "topup", "Top-up"
