"""
Payment services.

Usage:
    from payments.services import PaymentOrchestrator, CartPaymentParams, CartItem
"""

from payments.services.payment_orchestrator import (
    CartItem,
    CartPaymentParams,
    GatewayEventOutcome,
    GatewayPaymentResult,
    PaymentOrchestrator,
    WalletPaymentResult,
)

__all__ = [
    "CartItem",
    "CartPaymentParams",
    "GatewayEventOutcome",
    "GatewayPaymentResult",
    "PaymentOrchestrator",
    "WalletPaymentResult",
]
