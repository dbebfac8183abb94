"""
Order and escrow exceptions.

Exception Hierarchy:
    OrderNotFoundError (404)
    EscrowError (400)
    ├── EscrowAlreadyReleased - Release attempted on a released order
    └── EscrowNotEligible - Order cannot be confirmed (e.g. cancelled)
    ShippingDispatchError (502) - Carrier rejected or could not be reached
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ExternalServiceError, NotFoundError

if TYPE_CHECKING:
    from typing import Any


class OrderNotFoundError(NotFoundError):
    default_error_code: str = "ORDER_NOT_FOUND"


class EscrowError(BaseApplicationError):
    default_error_code: str = "ESCROW_ERROR"


class EscrowAlreadyReleased(EscrowError):
    """Escrow is terminal; a second release never pays the seller twice."""

    default_error_code: str = "ESCROW_ALREADY_RELEASED"


class EscrowNotEligible(EscrowError):
    default_error_code: str = "ESCROW_NOT_ELIGIBLE"


class ShippingDispatchError(ExternalServiceError):
    """
    Carrier shipment creation failed.

    Attributes:
        is_retryable: False for 4xx rejections, True otherwise
    """

    default_error_code: str = "SHIPPING_DISPATCH_FAILED"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        is_retryable: bool = True,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.is_retryable = is_retryable


__all__ = [
    "OrderNotFoundError",
    "EscrowError",
    "EscrowAlreadyReleased",
    "EscrowNotEligible",
    "ShippingDispatchError",
]
