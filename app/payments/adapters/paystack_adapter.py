"""
Card gateway adapter (Paystack).

All card gateway calls go through a GatewayAdapter so the orchestrator
never touches HTTP directly and tests can substitute a fake.

Features:
- Configurable timeouts on all API calls (httpx)
- Error translation to payments.exceptions gateway errors
- Structured logging with timing metrics
- Webhook HMAC-SHA512 verification over the exact raw body

Configuration (via settings):
- PAYSTACK_SECRET_KEY: API secret, also the webhook signing key
- PAYSTACK_BASE_URL: API base URL (default: https://api.paystack.co)
- PAYSTACK_CALLBACK_URL: Redirect after hosted checkout
- PAYSTACK_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import PaystackAdapter, InitializeParams

    session = PaystackAdapter().initialize(
        InitializeParams(
            email=user.email,
            amount_minor=to_minor_units(Decimal("7000.00")),
            reference=generate_reference("CART"),
            metadata={"purpose": "cart_payment"},
        )
    )
    session.authorization_url
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
from django.conf import settings

from payments.exceptions import (
    GatewayError,
    GatewayRequestError,
    GatewaySignatureInvalid,
    GatewayUnavailableError,
    PaymentValidationError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class InitializeParams:
    """
    Parameters for starting a hosted payment session.

    Attributes:
        email: Payer email shown on the hosted page
        amount_minor: Amount in minor units (kobo)
        reference: Globally unique payment reference
        metadata: Key-value pairs echoed back in webhooks
        callback_url: Redirect after payment (defaults to settings)
    """

    email: str
    amount_minor: int
    reference: str
    metadata: dict[str, Any] = field(default_factory=dict)
    callback_url: str | None = None

    def __post_init__(self) -> None:
        if self.amount_minor <= 0:
            raise ValueError("amount_minor must be positive")
        if not self.reference:
            raise ValueError("reference is required")
        if not self.email:
            raise ValueError("email is required")


@dataclass
class GatewaySession:
    """Hosted payment session returned by initialize()."""

    authorization_url: str
    access_code: str
    reference: str


@dataclass
class GatewayEvent:
    """
    A verified, normalized webhook event.

    Attributes:
        event: Event type (e.g., 'charge.success')
        reference: Payment reference the event refers to
        amount_minor: Amount charged in minor units, if present
        status: Gateway transaction status, if present
        raw: Full payload as received
    """

    event: str
    reference: str
    amount_minor: int | None = None
    status: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Helpers
# =============================================================================


def generate_reference(prefix: str = "PAY") -> str:
    """
    Generate a globally unique payment reference.

    Format: {PREFIX}-{UTC timestamp}-{12 hex chars}
    e.g. CART-20240101120000-3f9a1c2b7d4e
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{prefix.upper()}-{timestamp}-{uuid.uuid4().hex[:12]}"


def to_minor_units(amount: Decimal) -> int:
    """Convert major units (naira) to minor units (kobo)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / 100).quantize(Decimal("0.01"))


# =============================================================================
# Adapter Boundary
# =============================================================================


class GatewayAdapter(ABC):
    """Boundary between the payment orchestrator and a card gateway."""

    @abstractmethod
    def initialize(self, params: InitializeParams) -> GatewaySession:
        """Start a hosted payment session."""

    @abstractmethod
    def verify_transaction(self, reference: str) -> dict[str, Any]:
        """Fetch the gateway's record of a transaction (amount in minor units)."""

    @abstractmethod
    def verify_callback(self, raw_body: bytes, signature: str | None) -> dict[str, Any]:
        """
        Authenticate a webhook and return its parsed payload.

        Must raise GatewaySignatureInvalid before parsing when the
        signature does not match.
        """

    def parse_event(self, payload: dict[str, Any]) -> GatewayEvent:
        """Normalize a verified payload into a GatewayEvent."""
        event_type = payload.get("event")
        data = payload.get("data") or {}
        reference = data.get("reference") if isinstance(data, dict) else None
        if not event_type or not reference:
            raise PaymentValidationError(
                "Webhook payload missing event or reference",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        amount = data.get("amount")
        try:
            amount_minor = int(amount) if amount is not None else None
        except (TypeError, ValueError):
            raise PaymentValidationError(
                "Webhook amount is not an integer",
                error_code="INVALID_WEBHOOK_PAYLOAD",
                details={"amount": str(amount)},
            )

        return GatewayEvent(
            event=str(event_type),
            reference=str(reference),
            amount_minor=amount_minor,
            status=data.get("status"),
            raw=payload,
        )


class PaystackAdapter(GatewayAdapter):
    """
    Paystack implementation of the card gateway boundary.

    Constructor arguments default to settings; tests pass an
    httpx.MockTransport via ``transport``.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        callback_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self.callback_url = (
            callback_url if callback_url is not None else settings.PAYSTACK_CALLBACK_URL
        )
        self._transport = transport

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Transactions
    # =========================================================================

    def initialize(self, params: InitializeParams) -> GatewaySession:
        """
        Initialize a hosted checkout.

        Raises:
            GatewayUnavailableError: Timeout, transport error or 5xx
            GatewayRequestError: Rejected request
        """
        body: dict[str, Any] = {
            "email": params.email,
            "amount": params.amount_minor,
            "reference": params.reference,
            "currency": settings.PAYMENT_CURRENCY,
            "metadata": params.metadata,
        }
        callback_url = params.callback_url or self.callback_url
        if callback_url:
            body["callback_url"] = callback_url

        log_context = {
            "operation": "initialize",
            "reference": params.reference,
            "amount_minor": params.amount_minor,
        }
        data = self._request("POST", "/transaction/initialize", log_context, json_body=body)

        try:
            return GatewaySession(
                authorization_url=data["authorization_url"],
                access_code=data.get("access_code", ""),
                reference=data.get("reference") or params.reference,
            )
        except (KeyError, TypeError):
            self.get_logger().error("Malformed initialize response", extra=log_context)
            raise GatewayUnavailableError(
                "Payment gateway returned an unexpected response",
                error_code="GATEWAY_BAD_RESPONSE",
            )

    def verify_transaction(self, reference: str) -> dict[str, Any]:
        """
        Fetch the gateway's view of a transaction.

        Used for manual reconciliation of intents flagged by the webhook
        handler; never called on the checkout hot path.
        """
        return self._request(
            "GET",
            f"/transaction/verify/{reference}",
            {"operation": "verify_transaction", "reference": reference},
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_callback(self, raw_body: bytes, signature: str | None) -> dict[str, Any]:
        """
        Verify HMAC-SHA512(secret, raw_body) against the signature header.

        Args:
            raw_body: Exact bytes received (never a re-serialized object)
            signature: Hex digest from the signature header

        Raises:
            GatewaySignatureInvalid: Missing or mismatched signature
            PaymentValidationError: Body is not a JSON object
        """
        if not signature or not self.secret_key:
            raise GatewaySignatureInvalid("Missing webhook signature")

        expected = hmac.new(
            self.secret_key.encode("utf-8"), raw_body, hashlib.sha512
        ).hexdigest()
        received = signature.strip().encode("utf-8", "replace")
        if not hmac.compare_digest(expected.encode("ascii"), received):
            self.get_logger().warning(
                "Webhook signature mismatch",
                extra={"body_length": len(raw_body)},
            )
            raise GatewaySignatureInvalid("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise PaymentValidationError(
                "Webhook body is not valid JSON",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )
        if not isinstance(payload, dict):
            raise PaymentValidationError(
                "Webhook body must be a JSON object",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )
        return payload

    def sign(self, raw_body: bytes) -> str:
        """Signature the gateway would send for raw_body."""
        return hmac.new(self.secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()

    # =========================================================================
    # HTTP
    # =========================================================================

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
        )

    def _request(
        self,
        method: str,
        path: str,
        log_context: dict[str, Any],
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform a call and return the response's ``data`` object."""
        logger = self.get_logger()
        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            with self._client() as client:
                response = client.request(method, path, json=json_body)
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_gateway_error(e, log_context, duration_ms)
            raise  # Never reached

        duration_ms = (time.time() - start_time) * 1000

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 500:
            logger.error(
                "Gateway server error",
                extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
            )
            raise GatewayUnavailableError(
                "Payment gateway is unavailable. Please retry.",
                gateway_status=response.status_code,
            )

        if response.status_code >= 400 or not body.get("status"):
            logger.warning(
                "Gateway rejected request",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "gateway_message": body.get("message"),
                    "duration_ms": duration_ms,
                },
            )
            raise GatewayRequestError(
                body.get("message") or "Payment gateway rejected the request",
                gateway_status=response.status_code,
            )

        logger.info(
            "Gateway operation completed",
            extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return body.get("data") or {}

    def _handle_gateway_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """Translate httpx transport errors to gateway exceptions."""
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, httpx.TimeoutException):
            logger.error("Gateway request timed out", extra=log_context)
            raise GatewayUnavailableError(
                "Payment gateway timed out. Please retry.",
                error_code="GATEWAY_TIMEOUT",
            )

        if isinstance(error, httpx.TransportError):
            logger.error("Could not reach gateway", extra=log_context, exc_info=True)
            raise GatewayUnavailableError("Could not reach payment gateway. Please retry.")

        logger.error(
            f"Unexpected gateway error: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise GatewayError(f"Unexpected gateway error: {error}")
