"""
Adapters for the external card gateway.

Usage:
    from payments.adapters import PaystackAdapter, InitializeParams
"""

from payments.adapters.paystack_adapter import (
    GatewayAdapter,
    GatewayEvent,
    GatewaySession,
    InitializeParams,
    PaystackAdapter,
    from_minor_units,
    generate_reference,
    to_minor_units,
)

__all__ = [
    "GatewayAdapter",
    "GatewayEvent",
    "GatewaySession",
    "InitializeParams",
    "PaystackAdapter",
    "from_minor_units",
    "generate_reference",
    "to_minor_units",
]
