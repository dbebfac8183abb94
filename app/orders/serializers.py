"""
Serializers for the orders API.

Serializer Hierarchy:
    OrderSerializer: Order summary returned after checkout
    EscrowStatusSerializer: Read-only escrow projection
    ConfirmQualitySerializer: POST confirm-quality request
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order

MONEY = {"max_digits": 14, "decimal_places": 2, "read_only": True}


class OrderSerializer(serializers.ModelSerializer):
    productId = serializers.CharField(source="product_id", read_only=True)
    productTitle = serializers.CharField(source="product_title", read_only=True)
    sellerId = serializers.UUIDField(source="seller_id", read_only=True)
    unitPrice = serializers.DecimalField(source="unit_price", **MONEY)
    totalAmount = serializers.DecimalField(source="total_amount", **MONEY)
    serviceFee = serializers.DecimalField(source="service_fee", **MONEY)
    shippingFee = serializers.DecimalField(source="shipping_fee", **MONEY)
    insuranceFee = serializers.DecimalField(source="insurance_fee", **MONEY)
    shippingMethod = serializers.CharField(source="shipping_method", read_only=True)
    escrowState = serializers.CharField(source="escrow_state", read_only=True)
    inspectionDeadline = serializers.DateTimeField(source="inspection_deadline", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "reference",
            "productId",
            "productTitle",
            "sellerId",
            "quantity",
            "unitPrice",
            "totalAmount",
            "serviceFee",
            "shippingFee",
            "insuranceFee",
            "shippingMethod",
            "status",
            "escrowState",
            "inspectionDeadline",
        ]
        read_only_fields = ["id", "reference", "quantity", "status"]


class EscrowStatusSerializer(serializers.Serializer):
    orderId = serializers.CharField(source="order_id")
    verificationLevel = serializers.CharField(source="verification_level")
    escrowReleased = serializers.BooleanField(source="escrow_released")
    hoursRemaining = serializers.IntegerField(source="hours_remaining")
    qualityRating = serializers.IntegerField(source="quality_rating", allow_null=True)
    qualityNotes = serializers.CharField(source="quality_notes", allow_blank=True)
    canConfirmQuality = serializers.BooleanField(source="can_confirm_quality")
    inspectionDeadline = serializers.DateTimeField(source="inspection_deadline")
    releasedVia = serializers.CharField(source="released_via", allow_blank=True)


class ConfirmQualitySerializer(serializers.Serializer):
    qualityRating = serializers.IntegerField(source="quality_rating", min_value=1, max_value=5)
    qualityNotes = serializers.CharField(
        source="quality_notes", required=False, allow_blank=True, max_length=2000, default=""
    )
