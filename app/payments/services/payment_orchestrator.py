"""
Payment orchestrator: the entry point for checkout and gateway events.

The orchestrator decides which payment path applies, drives the wallet
ledger and the card gateway, and asks the OrderFactory for orders only
once funds are actually secured.

Payment paths:
    wallet  - debit, record a successful intent and create orders in one
              transaction; no external callback involved
    card    - record a pending intent carrying the priced cart snapshot,
              start a hosted gateway session, return the redirect URL;
              orders are created later by the charge.success webhook
    hybrid  - wallet_portion = min(balance, total); the card covers the
              rest. The wallet is NOT debited until the card leg is
              confirmed, so an abandoned checkout never costs the buyer
    funding - card top-up of the caller's wallet; charge.success credits
              the wallet once (reference "<ref>:funding"), no orders

Webhook idempotency:
    charge.success is processed under a row lock on the intent. An intent
    already in SUCCESS is a duplicate delivery and does nothing; the FSM
    forbids a second SUCCESS transition regardless.

Usage:
    orchestrator = PaymentOrchestrator()
    result = orchestrator.pay_cart(params, method=PaymentMethod.HYBRID)
    if result.success:
        redirect_to(result.data.authorization_url)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.exceptions import ValidationError
from core.services import BaseService, ServiceResult

from orders.services.order_factory import OrderFactory
from payments.adapters import (
    GatewayAdapter,
    GatewayEvent,
    InitializeParams,
    PaystackAdapter,
    from_minor_units,
    generate_reference,
    to_minor_units,
)
from payments.exceptions import (
    GatewayError,
    PaymentIntentNotFoundError,
    PaymentValidationError,
)
from payments.fees import FeeBreakdown, ShippingTier, calculate_fees, tier_for
from payments.repositories import PaymentIntentRepository
from payments.state_machines import (
    PaymentIntentStatus,
    PaymentMethod,
    PaymentPurpose,
)
from payments.wallet.exceptions import InsufficientFunds
from payments.wallet.services import wallet_ledger
from payments.wallet.types import WalletTransactionKind

if TYPE_CHECKING:
    from accounts.models import User
    from orders.models import Order
    from payments.models import PaymentIntent
    from payments.wallet.services import WalletLedger


logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"

ORDER_CREATING_PURPOSES = (PaymentPurpose.CART_PAYMENT, PaymentPurpose.HYBRID_PAYMENT)

# Rejected before any intent is written or money moves.
CHECKOUT_REJECTIONS = (PaymentValidationError, ValidationError)


# =============================================================================
# Parameter Types
# =============================================================================


@dataclass
class CartItem:
    """One line of a cart, priced by the client and re-validated here."""

    product_id: str
    seller_id: str
    price: Decimal
    quantity: int = 1
    title: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass
class CartPaymentParams:
    """
    A cart checkout request.

    Attributes:
        user: Paying user
        items: Cart lines (at least one)
        total_amount: Client-computed total (items + shipping + insurance)
        service_fee: Client-computed service fee, checked if given
        shipping_fee / insurance_fee: Pass-through fees
        shipping_method: 'self-arranged' or 'carrier'
        verification_level: 'self-arranged', 'basic' or 'premium'
        shipping_address: Required for carrier shipping
    """

    user: User
    items: list[CartItem]
    total_amount: Decimal
    shipping_method: str
    shipping_fee: Decimal = Decimal("0")
    insurance_fee: Decimal = Decimal("0")
    service_fee: Decimal | None = None
    verification_level: str = "basic"
    shipping_address: dict[str, Any] | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.items:
            raise PaymentValidationError(
                "Invalid cart items", error_code="INVALID_CART", details={"items": "empty"}
            )

        for index, item in enumerate(self.items):
            if not item.product_id or not item.seller_id:
                raise PaymentValidationError(
                    "Invalid cart items",
                    error_code="INVALID_CART",
                    details={"item": index, "reason": "product and seller are required"},
                )
            if item.price is None or item.price <= 0 or item.quantity <= 0:
                raise PaymentValidationError(
                    "Invalid cart items",
                    error_code="INVALID_CART",
                    details={"item": index, "reason": "price and quantity must be positive"},
                )
            if str(item.seller_id) == str(self.user.pk):
                raise PaymentValidationError(
                    "You cannot buy your own item",
                    error_code="INVALID_CART",
                    details={"item": index},
                )

        if self.total_amount is None or self.total_amount <= 0:
            raise PaymentValidationError("Invalid total amount", error_code="INVALID_TOTAL")

        if self.shipping_method == "carrier" and not self.shipping_address:
            raise PaymentValidationError(
                "Shipping address required for delivery",
                error_code="SHIPPING_ADDRESS_REQUIRED",
            )

    @property
    def items_total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class WalletPaymentResult:
    reference: str
    orders: list[Order]
    new_balance: Decimal
    breakdown: FeeBreakdown


@dataclass
class GatewayPaymentResult:
    """Card or hybrid checkout awaiting the buyer on the hosted page."""

    reference: str
    authorization_url: str
    breakdown: FeeBreakdown
    wallet_portion: Decimal | None = None
    card_portion: Decimal | None = None


@dataclass
class GatewayEventOutcome:
    """
    What a webhook delivery did.

    status is one of: processed, duplicate, failed, ignored, underpaid,
    wallet_shortfall.
    """

    reference: str
    event: str
    status: str
    orders_created: int = 0

    @property
    def duplicate(self) -> bool:
        return self.status == "duplicate"


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Central coordinator for payment operations.

    Collaborators are injected so tests can substitute fakes:
        wallet: WalletLedger
        gateway: GatewayAdapter
        intents: PaymentIntentRepository
        order_factory: OrderFactory
    """

    def __init__(
        self,
        wallet: WalletLedger | None = None,
        gateway: GatewayAdapter | None = None,
        intents: PaymentIntentRepository | None = None,
        order_factory: OrderFactory | None = None,
    ):
        self.wallet = wallet or wallet_ledger
        self.gateway = gateway or PaystackAdapter()
        self.intents = intents or PaymentIntentRepository()
        self.order_factory = order_factory or OrderFactory()

    # =========================================================================
    # Pricing
    # =========================================================================

    def price_cart(self, params: CartPaymentParams) -> FeeBreakdown:
        """
        Recompute the cart and compare it with what the client sent.

        Raises:
            PaymentValidationError: total or service fee outside tolerance
        """
        tolerance = settings.PAYMENT_TOTAL_TOLERANCE
        breakdown = calculate_fees(
            params.items_total,
            tier_for(params.shipping_method, params.verification_level),
            shipping_fee=params.shipping_fee,
            insurance_fee=params.insurance_fee,
        )

        if abs(params.total_amount - breakdown.total_amount) > tolerance:
            raise PaymentValidationError(
                "Total amount does not match cart",
                error_code="TOTAL_MISMATCH",
                details={
                    "expected": str(breakdown.total_amount),
                    "received": str(params.total_amount),
                    "items_total": str(breakdown.base_amount),
                    "shipping_fee": str(breakdown.shipping_fee),
                    "insurance_fee": str(breakdown.insurance_fee),
                },
            )

        if params.service_fee is not None and abs(params.service_fee - breakdown.service_fee) > tolerance:
            raise PaymentValidationError(
                "Service fee does not match cart",
                error_code="SERVICE_FEE_MISMATCH",
                details={
                    "expected": str(breakdown.service_fee),
                    "received": str(params.service_fee),
                },
            )

        return breakdown

    def _price_and_snapshot(self, params: CartPaymentParams) -> tuple[FeeBreakdown, dict[str, Any]]:
        breakdown = self.price_cart(params)
        return breakdown, self.order_factory.build_snapshot(params, breakdown)

    # =========================================================================
    # Payment Paths
    # =========================================================================

    def pay_cart(self, params: CartPaymentParams, method: str) -> ServiceResult:
        """Dispatch to the wallet, card or hybrid path."""
        handlers = {
            PaymentMethod.WALLET: self.pay_by_wallet,
            PaymentMethod.CARD: self.pay_by_card,
            PaymentMethod.HYBRID: self.pay_by_wallet_and_card,
        }
        handler = handlers.get(method)
        if handler is None:
            return ServiceResult.failure(
                f"Unsupported payment method: {method}",
                error_code="INVALID_PAYMENT_METHOD",
            )
        return handler(params)

    def pay_by_wallet(self, params: CartPaymentParams) -> ServiceResult[WalletPaymentResult]:
        """
        Pay the whole cart from the wallet.

        Debit, successful intent and orders commit together or not at all.
        """
        try:
            breakdown, snapshot = self._price_and_snapshot(params)
        except CHECKOUT_REJECTIONS as e:
            return self.handle_exception(e, "Wallet checkout rejected", logging.INFO)

        reference = generate_reference("WALLET-CART")

        try:
            with self.atomic():
                intent = self.intents.create_success(
                    reference=reference,
                    user_id=params.user.pk,
                    amount=breakdown.total_amount,
                    method=PaymentMethod.WALLET,
                    purpose=PaymentPurpose.CART_PAYMENT,
                    breakdown=breakdown,
                    metadata={"cart": snapshot},
                )
                txn = self.wallet.reserve_and_debit(
                    user_id=params.user.pk,
                    amount=breakdown.total_amount,
                    reference=reference,
                    payment_intent=intent,
                    narration=f"Cart payment {reference}",
                )
                orders = self.order_factory.create_orders(intent, snapshot)
        except InsufficientFunds as e:
            self._record_rejected_wallet_attempt(params, reference, breakdown, snapshot, e)
            return self.handle_exception(e, "Wallet checkout rejected", logging.INFO)

        self.get_logger().info(
            "Wallet checkout completed",
            extra={
                "reference": reference,
                "user_id": str(params.user.pk),
                "amount": str(breakdown.total_amount),
                "orders": len(orders),
            },
        )
        return ServiceResult.success(
            WalletPaymentResult(
                reference=reference,
                orders=orders,
                new_balance=txn.balance_after,
                breakdown=breakdown,
            )
        )

    def _record_rejected_wallet_attempt(
        self,
        params: CartPaymentParams,
        reference: str,
        breakdown: FeeBreakdown,
        snapshot: dict[str, Any],
        error: InsufficientFunds,
    ) -> PaymentIntent:
        """Keep a failed intent for a wallet attempt the debit rolled back."""
        intent = self.intents.create_pending(
            reference=reference,
            user_id=params.user.pk,
            amount=breakdown.total_amount,
            method=PaymentMethod.WALLET,
            purpose=PaymentPurpose.CART_PAYMENT,
            breakdown=breakdown,
            metadata={"cart": snapshot},
        )
        return self.intents.mark_failed(
            intent, reason=f"Insufficient wallet balance: short by {error.shortfall}"
        )

    def pay_by_card(self, params: CartPaymentParams) -> ServiceResult[GatewayPaymentResult]:
        """
        Start a card checkout. No money moves and no order is created here.
        """
        try:
            breakdown, snapshot = self._price_and_snapshot(params)
        except CHECKOUT_REJECTIONS as e:
            return self.handle_exception(e, "Card checkout rejected", logging.INFO)

        reference = generate_reference("CART")
        intent = self.intents.create_pending(
            reference=reference,
            user_id=params.user.pk,
            amount=breakdown.total_amount,
            method=PaymentMethod.CARD,
            purpose=PaymentPurpose.CART_PAYMENT,
            breakdown=breakdown,
            metadata={"cart": snapshot},
        )
        return self._start_gateway_session(params.user, intent, breakdown)

    def pay_by_wallet_and_card(self, params: CartPaymentParams) -> ServiceResult:
        """
        Split the cart between wallet and card.

        Falls back to the wallet path when the balance covers everything.
        The wallet portion is only recorded here; it is debited by the
        charge.success webhook.
        """
        try:
            breakdown, snapshot = self._price_and_snapshot(params)
        except CHECKOUT_REJECTIONS as e:
            return self.handle_exception(e, "Hybrid checkout rejected", logging.INFO)

        total = breakdown.total_amount
        wallet_portion = min(self.wallet.get_balance(params.user.pk), total)
        card_portion = total - wallet_portion

        if card_portion <= 0:
            return self.pay_by_wallet(params)

        reference = generate_reference("HYBRID")
        intent = self.intents.create_pending(
            reference=reference,
            user_id=params.user.pk,
            amount=card_portion,
            method=PaymentMethod.HYBRID,
            purpose=PaymentPurpose.HYBRID_PAYMENT,
            breakdown=breakdown,
            wallet_portion=wallet_portion,
            metadata={"cart": snapshot},
        )
        result = self._start_gateway_session(params.user, intent, breakdown)
        if result.success:
            result.data.wallet_portion = wallet_portion
            result.data.card_portion = card_portion
        return result

    def fund_wallet(self, user: User, amount: Decimal) -> ServiceResult[GatewayPaymentResult]:
        """
        Start a card payment that tops up the caller's wallet.

        The wallet is credited by the charge.success webhook, never here.
        """
        minimum = settings.WALLET_FUNDING_MIN_AMOUNT
        if amount is None or amount < minimum:
            return self.handle_exception(
                PaymentValidationError(
                    f"Minimum wallet funding is {minimum}",
                    error_code="FUNDING_BELOW_MINIMUM",
                    details={"minimum": str(minimum)},
                ),
                "Wallet funding rejected",
                logging.INFO,
            )

        breakdown = calculate_fees(amount, ShippingTier.SELF_ARRANGED)
        intent = self.intents.create_pending(
            reference=generate_reference("FUND"),
            user_id=user.pk,
            amount=breakdown.total_amount,
            method=PaymentMethod.CARD,
            purpose=PaymentPurpose.WALLET_FUNDING,
            breakdown=breakdown,
        )
        return self._start_gateway_session(user, intent, breakdown)

    def _start_gateway_session(
        self, user: User, intent: PaymentIntent, breakdown: FeeBreakdown
    ) -> ServiceResult[GatewayPaymentResult]:
        try:
            session = self.gateway.initialize(
                InitializeParams(
                    email=user.email,
                    amount_minor=to_minor_units(intent.amount),
                    reference=intent.reference,
                    metadata={
                        "purpose": intent.purpose,
                        "user_id": str(user.pk),
                        "wallet_portion": str(intent.wallet_portion),
                    },
                )
            )
        except GatewayError as e:
            self.intents.mark_failed(intent, reason=e.message)
            return self.handle_exception(e, f"Gateway initialization failed for {intent.reference}")

        intent.authorization_url = session.authorization_url
        intent.gateway_response = {"access_code": session.access_code}
        intent.save(update_fields=["authorization_url", "gateway_response", "updated_at"])

        self.get_logger().info(
            "Gateway checkout started",
            extra={
                "reference": intent.reference,
                "method": intent.method,
                "amount": str(intent.amount),
                "wallet_portion": str(intent.wallet_portion),
            },
        )
        return ServiceResult.success(
            GatewayPaymentResult(
                reference=intent.reference,
                authorization_url=session.authorization_url,
                breakdown=breakdown,
            )
        )

    # =========================================================================
    # Gateway Events
    # =========================================================================

    def on_gateway_event(self, event: GatewayEvent) -> ServiceResult[GatewayEventOutcome]:
        """
        Apply a verified gateway webhook event.

        Safe to call any number of times for the same event. Exceptions
        from order creation propagate after rolling back so the gateway
        redelivers.
        """
        if event.event == CHARGE_SUCCESS:
            return self._on_charge_success(event)
        if event.event == CHARGE_FAILED:
            return self._on_charge_failed(event)

        self.get_logger().info(
            "Ignoring unhandled gateway event",
            extra={"event": event.event, "reference": event.reference},
        )
        return ServiceResult.success(
            GatewayEventOutcome(reference=event.reference, event=event.event, status="ignored")
        )

    def _on_charge_success(self, event: GatewayEvent) -> ServiceResult[GatewayEventOutcome]:
        log = self.get_logger()
        log_context = {"reference": event.reference, "event": event.event}

        def outcome(status: str, orders_created: int = 0) -> ServiceResult[GatewayEventOutcome]:
            return ServiceResult.success(
                GatewayEventOutcome(
                    reference=event.reference,
                    event=event.event,
                    status=status,
                    orders_created=orders_created,
                )
            )

        try:
            with self.atomic():
                intent = self.intents.get_for_update(event.reference)

                if intent.status == PaymentIntentStatus.SUCCESS:
                    log.info("Duplicate charge.success ignored", extra=log_context)
                    return outcome("duplicate")

                if intent.status == PaymentIntentStatus.FAILED:
                    self.intents.flag_reconciliation(
                        intent, "Gateway reported a successful charge for a failed payment"
                    )
                    return outcome("ignored")

                expected_minor = to_minor_units(intent.amount)
                if event.amount_minor is not None and event.amount_minor < expected_minor:
                    self.intents.mark_failed(intent, reason="Amount paid is less than amount due")
                    self.intents.flag_reconciliation(
                        intent,
                        f"Underpaid: received {event.amount_minor}, expected {expected_minor} (minor units)",
                    )
                    return outcome("underpaid")

                if intent.purpose == PaymentPurpose.HYBRID_PAYMENT and intent.wallet_portion > 0:
                    try:
                        self.wallet.reserve_and_debit(
                            user_id=intent.user_id,
                            amount=intent.wallet_portion,
                            reference=f"{intent.reference}:wallet",
                            payment_intent=intent,
                            narration=f"Wallet portion of {intent.reference}",
                        )
                    except InsufficientFunds as e:
                        self.intents.mark_failed(intent, reason="Wallet balance no longer covers wallet portion")
                        self.intents.flag_reconciliation(
                            intent,
                            f"Card leg captured but wallet short by {e.shortfall}",
                        )
                        return outcome("wallet_shortfall")

                if intent.purpose == PaymentPurpose.WALLET_FUNDING:
                    self.wallet.credit(
                        user_id=intent.user_id,
                        amount=intent.amount,
                        reference=f"{intent.reference}:funding",
                        kind=WalletTransactionKind.TOPUP,
                        payment_intent=intent,
                        narration="Wallet funding via card payment",
                    )

                orders: list = []
                if intent.purpose in ORDER_CREATING_PURPOSES:
                    orders = self.order_factory.create_orders(intent, intent.cart_snapshot)

                self.intents.mark_success(intent, gateway_response=event.raw)

        except PaymentIntentNotFoundError as e:
            return self.handle_exception(e, "charge.success for unknown reference", logging.WARNING)
        except Exception:
            log.critical(
                "Order creation failed after confirmed charge",
                extra={**log_context, "reconciliation_required": True},
                exc_info=True,
            )
            raise

        log.info(
            "Charge confirmed, orders created",
            extra={**log_context, "orders": len(orders)},
        )
        return outcome("processed", orders_created=len(orders))

    def _on_charge_failed(self, event: GatewayEvent) -> ServiceResult[GatewayEventOutcome]:
        try:
            with self.atomic():
                intent = self.intents.get_for_update(event.reference)
                if intent.status != PaymentIntentStatus.PENDING:
                    status = "duplicate" if intent.status == PaymentIntentStatus.FAILED else "ignored"
                    return ServiceResult.success(
                        GatewayEventOutcome(reference=event.reference, event=event.event, status=status)
                    )
                gateway_message = (event.raw.get("data") or {}).get("gateway_response") or "Charge failed"
                self.intents.mark_failed(intent, reason=str(gateway_message))
        except PaymentIntentNotFoundError as e:
            return self.handle_exception(e, "charge.failed for unknown reference", logging.WARNING)

        self.get_logger().info(
            "Charge failed; no funds were taken from the wallet",
            extra={"reference": event.reference},
        )
        return ServiceResult.success(
            GatewayEventOutcome(reference=event.reference, event=event.event, status="failed")
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_intent(self, reference: str, user: User | None = None) -> PaymentIntent:
        """
        Look up an intent, optionally scoped to its owner.

        Raises:
            PaymentIntentNotFoundError: Unknown reference or not the owner
        """
        intent = self.intents.get(reference)
        if user is not None and intent.user_id != user.pk:
            raise PaymentIntentNotFoundError(
                f"No payment found for reference {reference}",
                details={"reference": reference},
            )
        return intent

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def check_with_gateway(self, reference: str) -> ServiceResult[dict[str, Any]]:
        """
        Compare an intent with the gateway's record of the transaction.

        The comparison is appended to the intent's reconciliation note for
        support staff. No money moves and no status changes here.
        """
        try:
            intent = self.intents.get(reference)
            record = self.gateway.verify_transaction(reference)
        except (PaymentIntentNotFoundError, GatewayError) as e:
            return self.handle_exception(e, f"Gateway check failed for {reference}", logging.WARNING)

        amount_minor = record.get("amount")
        gateway_amount = from_minor_units(amount_minor) if amount_minor is not None else None
        summary = {
            "reference": reference,
            "intent_status": intent.status,
            "intent_amount": intent.amount,
            "gateway_status": record.get("status"),
            "gateway_amount": gateway_amount,
            "amount_matches": gateway_amount == intent.amount,
        }
        self.intents.add_reconciliation_note(
            intent,
            f"Gateway check: status={summary['gateway_status']} amount={gateway_amount} "
            f"(intent {intent.status}, {intent.amount})",
        )
        return ServiceResult.success(summary)
