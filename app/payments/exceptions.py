"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain, 400)
    ├── PaymentValidationError - Cart/total/fee mismatch, malformed input
    ├── PaymentIntentNotFoundError - Unknown reference (404)
    ├── GatewaySignatureInvalid - Webhook HMAC mismatch (401)
    └── GatewayError - Base for card gateway failures (502)
        ├── GatewayUnavailableError - Timeouts, 5xx, transport errors (retryable)
        └── GatewayRequestError - 4xx or status=false responses (permanent)

    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import PaymentValidationError

    raise PaymentValidationError(
        "Total amount does not match cart",
        error_code="TOTAL_MISMATCH",
        details={"expected": "853700.00", "received": "850000.00"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import status

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for all payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentValidationError(PaymentError):
    """
    Raised when a payment request fails validation.

    Always raised before any money moves. details carries the specific
    mismatch (expected vs received amounts, offending item index).
    """

    default_error_code: str = "VALIDATION_ERROR"


class PaymentIntentNotFoundError(PaymentError):
    """Raised when no payment intent exists for a reference."""

    default_error_code: str = "PAYMENT_INTENT_NOT_FOUND"
    http_status: int = status.HTTP_404_NOT_FOUND


class GatewaySignatureInvalid(PaymentError):
    """
    Raised when a webhook signature is missing or does not match.

    Treated as a potential attack: the payload is never parsed or acted on.
    """

    default_error_code: str = "INVALID_SIGNATURE"
    http_status: int = status.HTTP_401_UNAUTHORIZED


# =============================================================================
# Card Gateway Exceptions
# =============================================================================


class GatewayError(PaymentError):
    """
    Base exception for card gateway failures.

    Attributes:
        gateway_status: HTTP status returned by the gateway, if any
        is_retryable: Whether the same request may succeed later

    Example:
        try:
            adapter.initialize(params)
        except GatewayError as e:
            if e.is_retryable:
                ...
    """

    default_error_code: str = "GATEWAY_ERROR"
    http_status: int = status.HTTP_502_BAD_GATEWAY
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_status is not None:
            details["gateway_status"] = gateway_status
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_status = gateway_status


class GatewayUnavailableError(GatewayError):
    """Gateway timed out, returned 5xx, or could not be reached."""

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayRequestError(GatewayError):
    """Gateway rejected the request (4xx or an explicit status=false)."""

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


# =============================================================================
# Concurrency Control
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a payment intent transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in the standard error format.
    details carries current_state and the attempted transition.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    "PaymentError",
    "PaymentValidationError",
    "PaymentIntentNotFoundError",
    "GatewaySignatureInvalid",
    "GatewayError",
    "GatewayUnavailableError",
    "GatewayRequestError",
    "InvalidStateTransitionError",
]
