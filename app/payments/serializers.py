"""
DRF serializers for the payments API.

Request and response bodies use camelCase keys; each field maps onto the
snake_case service attribute through ``source``.

Serializer Hierarchy:
    CartItemSerializer: One cart line
    PayCartSerializer: POST /pay/cart request, builds CartPaymentParams
    FundWalletSerializer: POST /wallet/fund request
    FeeBreakdownSerializer: paymentBreakdown block
    WalletPaymentResponseSerializer: Wallet checkout response
    GatewayPaymentResponseSerializer: Card/hybrid checkout response
    PaymentIntentSerializer: GET /pay/intents/<reference>
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from orders.serializers import OrderSerializer
from payments.models import PaymentIntent
from payments.services import CartItem, CartPaymentParams
from payments.state_machines import PaymentMethod

MONEY = {"max_digits": 14, "decimal_places": 2}

SHIPPING_METHODS = ["self-arranged", "carrier"]
VERIFICATION_LEVELS = ["self-arranged", "basic", "premium"]


class CartItemSerializer(serializers.Serializer):
    productId = serializers.CharField(source="product_id", max_length=64)
    sellerId = serializers.CharField(source="seller_id", max_length=64)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    price = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    quantity = serializers.IntegerField(min_value=1, default=1)


class PayCartSerializer(serializers.Serializer):
    """
    Request body for POST /pay/cart.

    Fee amounts are checked against the server-side calculation by the
    orchestrator, not here.
    """

    items = CartItemSerializer(many=True, allow_empty=False)
    totalAmount = serializers.DecimalField(source="total_amount", **MONEY)
    serviceFee = serializers.DecimalField(source="service_fee", required=False, allow_null=True, **MONEY)
    shippingFee = serializers.DecimalField(
        source="shipping_fee", min_value=Decimal("0"), default=Decimal("0"), **MONEY
    )
    insuranceFee = serializers.DecimalField(
        source="insurance_fee", min_value=Decimal("0"), default=Decimal("0"), **MONEY
    )
    shippingMethod = serializers.ChoiceField(source="shipping_method", choices=SHIPPING_METHODS)
    verificationLevel = serializers.ChoiceField(
        source="verification_level", choices=VERIFICATION_LEVELS, default="basic"
    )
    shippingAddress = serializers.DictField(source="shipping_address", required=False, allow_null=True)
    paymentMethod = serializers.ChoiceField(source="payment_method", choices=PaymentMethod.choices)

    def to_params(self, user) -> CartPaymentParams:
        """Build orchestrator parameters from validated data."""
        data = self.validated_data
        return CartPaymentParams(
            user=user,
            items=[CartItem(**item) for item in data["items"]],
            total_amount=data["total_amount"],
            service_fee=data.get("service_fee"),
            shipping_fee=data["shipping_fee"],
            insurance_fee=data["insurance_fee"],
            shipping_method=data["shipping_method"],
            verification_level=data["verification_level"],
            shipping_address=data.get("shipping_address"),
        )


class FundWalletSerializer(serializers.Serializer):
    """Request body for POST /wallet/fund. The minimum is enforced by the orchestrator."""

    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)


class FeeBreakdownSerializer(serializers.Serializer):
    itemsTotal = serializers.DecimalField(source="base_amount", **MONEY)
    serviceFee = serializers.DecimalField(source="service_fee", **MONEY)
    shippingFee = serializers.DecimalField(source="shipping_fee", **MONEY)
    insuranceFee = serializers.DecimalField(source="insurance_fee", **MONEY)
    sellerReceives = serializers.DecimalField(source="seller_receives", **MONEY)
    totalAmount = serializers.DecimalField(source="total_amount", **MONEY)


class WalletPaymentResponseSerializer(serializers.Serializer):
    reference = serializers.CharField()
    orders = OrderSerializer(many=True)
    newWalletBalance = serializers.DecimalField(source="new_balance", **MONEY)
    paymentBreakdown = FeeBreakdownSerializer(source="breakdown")


class GatewayPaymentResponseSerializer(serializers.Serializer):
    authorizationUrl = serializers.URLField(source="authorization_url")
    reference = serializers.CharField()
    walletPortion = serializers.DecimalField(source="wallet_portion", allow_null=True, **MONEY)
    cardPortion = serializers.DecimalField(source="card_portion", allow_null=True, **MONEY)
    paymentBreakdown = FeeBreakdownSerializer(source="breakdown")


class PaymentIntentSerializer(serializers.ModelSerializer):
    """Status of one of the caller's payments, polled after the redirect."""

    walletPortion = serializers.DecimalField(source="wallet_portion", read_only=True, **MONEY)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    failureReason = serializers.CharField(source="failure_reason", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = PaymentIntent
        fields = [
            "reference",
            "status",
            "method",
            "purpose",
            "amount",
            "currency",
            "walletPortion",
            "paidAt",
            "failureReason",
            "createdAt",
        ]
        read_only_fields = ["reference", "status", "method", "purpose", "amount", "currency"]
