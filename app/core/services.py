"""
Base service layer patterns for business logic encapsulation.

- ServiceResult: result wrapper for operations whose callers branch on
  expected failures (insufficient funds, duplicate webhook, already released)
- BaseService: logger naming, transaction scope and exception conversion

Lower layers (wallet ledger, fee calculator, gateway adapters) raise
exceptions; the orchestrating services catch the expected ones and return
ServiceResult so views and Celery tasks can branch without try/except.

Usage:
    class EscrowManager(BaseService):
        def release_expired(self, order_id) -> ServiceResult[Order]:
            with self.atomic():
                ...
            return ServiceResult.success(order)

    result = manager.release_expired(order_id)
    if not result:
        logger.warning(result.error, extra={"error_code": result.error_code})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Structured failure context (field errors, amounts)

    Usage:
        result = orchestrator.pay_by_wallet(params)
        if result.success:
            orders = result.data.orders
        elif result.error_code == "INSUFFICIENT_FUNDS":
            shortfall = result.errors["shortfall"]
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, Any] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error_code and details; anything
        else is named after its class.
        """
        code = error_code or getattr(exc, "error_code", None)
        return cls(
            success=False,
            error=getattr(exc, "message", None) or str(exc),
            error_code=code or exc.__class__.__name__.upper(),
            errors=getattr(exc, "details", None) or None,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to the API body used by views.

        Failures use the same shape as BaseApplicationError.to_dict().
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["details"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - Logging named after the concrete service class
    - Explicit transaction boundaries
    - Consistent conversion of caught exceptions to ServiceResult
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class for easy filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around django.db.transaction.atomic(); nested use
        creates a savepoint.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: BaseApplicationError | Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log a caught exception and convert it to a failed ServiceResult.

        Args:
            exc: The caught exception
            context: Operation name prepended to the log message
            log_level: Logging level (default ERROR)
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(
            log_level,
            message,
            exc_info=log_level >= logging.ERROR,
            extra={"error_code": getattr(exc, "error_code", None)},
        )
        return ServiceResult.from_exception(exc)
