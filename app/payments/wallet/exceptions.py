"""
Wallet exceptions.

Exception Hierarchy:
    WalletError (base)
    ├── InsufficientFunds - Balance below the requested debit
    └── WalletNotFound - No user for the given id
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from rest_framework import status

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


class WalletError(BaseApplicationError):
    """Base exception for wallet operations."""

    default_error_code: str = "WALLET_ERROR"


class WalletNotFound(WalletError):
    default_error_code: str = "WALLET_NOT_FOUND"
    http_status: int = status.HTTP_404_NOT_FOUND


class InsufficientFunds(WalletError):
    """
    Raised when a debit exceeds the current balance.

    The debit is rejected, never clamped. required/available/shortfall are
    returned to the client so it can offer a top-up.

    Attributes:
        user_id: Owner of the wallet
        required: Amount requested
        available: Balance at the time of the check
        shortfall: required - available
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        user_id: uuid.UUID,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.user_id = user_id
        self.required = required
        self.available = available
        self.shortfall = required - available

        full_details = {
            "required": str(required),
            "available": str(available),
            "shortfall": str(self.shortfall),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message="Insufficient wallet balance",
            error_code=error_code,
            details=full_details,
        )
