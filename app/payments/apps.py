"""
Payments app configuration.

This app provides:
- Wallet ledger for user balances
- Card gateway integration (Paystack)
- Payment intent log and webhook handling
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
