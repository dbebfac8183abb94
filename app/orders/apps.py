"""
Orders app configuration.

This app provides:
- Orders created from confirmed payments
- Per-order escrow (buyer confirmation and timed auto-release)
- Carrier shipment dispatch
"""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders"
