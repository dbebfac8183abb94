"""
User model for the marketplace.

The user row carries the stored wallet balance. The balance is mutated only
by payments.wallet.services.WalletLedger under a row lock; request handlers
and admin forms never write it directly.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from accounts.managers import UserManager
from core.model_mixins import UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Custom user identified by email.

    Fields:
        email: Primary identifier, unique
        full_name: Display name used on orders and shipping labels
        phone: Contact number passed to the shipping carrier
        wallet_balance: Stored balance in major currency units, never negative
        is_active / is_staff: Standard Django flags
        date_joined / updated_at: Timestamps
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="User's display name",
    )
    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Contact phone number used for deliveries",
    )

    # Mutated only through WalletLedger
    wallet_balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Stored wallet balance (major currency units)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(wallet_balance__gte=0),
                name="user_wallet_balance_non_negative",
            ),
        ]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email.split("@")[0]
