"""
Base exception classes and the DRF exception handler.

Domain code raises subclasses of BaseApplicationError; the API layer turns
them into a consistent JSON body:

    {"error": "<message>", "error_code": "<CODE>", "details": {...}}

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or business rule violations (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Authorization failures (403)
    ├── ConflictError - State conflicts, invalid transitions (409)
    └── ExternalServiceError - Gateway/carrier failures (502)

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Order not found",
        error_code="ORDER_NOT_FOUND",
        details={"order_id": str(order_id)},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (amounts, identifiers)
        http_status: Status used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API error body; details are omitted when empty."""
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed carts, total/fee mismatches and missing shipping
    addresses. Raised before any money moves.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = status.HTTP_400_BAD_REQUEST


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    For missing or invalid tokens DRF raises AuthenticationFailed; this is
    for authenticated users acting on resources they do not own.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = status.HTTP_403_FORBIDDEN


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for invalid state transitions and unique constraint races.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = status.HTTP_409_CONFLICT


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging; the message returned to clients
    must not contain provider internals.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = status.HTTP_502_BAD_GATEWAY


# =============================================================================
# DRF Integration
# =============================================================================


def application_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF EXCEPTION_HANDLER that understands BaseApplicationError.

    Domain errors become {"error", "error_code", "details"?} with the
    status declared on the exception class. Everything else falls through
    to DRF's default handler, and unhandled exceptions stay unhandled so
    Django returns a plain 500 without a stack trace in production.
    """
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.info(
            "Domain error returned to client",
            extra={
                "error_code": exc.error_code,
                "http_status": exc.http_status,
                "view": view.__class__.__name__ if view else None,
            },
        )
        return Response(exc.to_dict(), status=exc.http_status)

    return exception_handler(exc, context)
