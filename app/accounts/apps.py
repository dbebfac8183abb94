"""
Django app configuration for accounts.
"""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Marketplace users and their stored wallet balance."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "Accounts"
