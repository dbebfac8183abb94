"""
Django admin configuration for accounts.

The wallet balance is read-only here; corrections go through a wallet
transaction so the ledger stays complete.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = (
        "email",
        "full_name",
        "wallet_balance",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = ("is_active", "is_staff", "is_superuser", "date_joined")
    search_fields = ("email", "full_name", "phone")
    ordering = ("-date_joined",)
    readonly_fields = ("wallet_balance", "date_joined", "updated_at", "last_login")

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Contact", {"fields": ("full_name", "phone")}),
        ("Wallet", {"fields": ("wallet_balance",)}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Timestamps", {"fields": ("date_joined", "updated_at", "last_login")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "full_name", "password1", "password2"),
            },
        ),
    )
