"""
Order escrow API views.

URL Structure:
    /api/v1/orders/{id}/escrow-status      GET
    /api/v1/orders/{id}/confirm-quality    POST
    /api/v1/orders/by-reference/{ref}      GET

Errors (not found, not a party to the order, already released) are raised
by EscrowManager and rendered by the project exception handler.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.models import Order
from orders.serializers import ConfirmQualitySerializer, EscrowStatusSerializer, OrderSerializer
from orders.services import EscrowManager


class EscrowStatusView(APIView):
    """Escrow status for the order's buyer or seller."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={
            200: EscrowStatusSerializer,
            403: OpenApiResponse(description="Not the buyer or seller"),
            404: OpenApiResponse(description="Order not found"),
        },
        tags=["Orders"],
    )
    def get(self, request, order_id):
        escrow_status = EscrowManager().get_status(order_id, viewer=request.user)
        return Response(EscrowStatusSerializer(escrow_status).data)


class ConfirmQualityView(APIView):
    """Buyer confirms quality, releasing escrow to the seller."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=ConfirmQualitySerializer,
        responses={
            200: EscrowStatusSerializer,
            400: OpenApiResponse(description="Already released or not eligible"),
            403: OpenApiResponse(description="Not the buyer"),
            404: OpenApiResponse(description="Order not found"),
        },
        tags=["Orders"],
    )
    def post(self, request, order_id):
        serializer = ConfirmQualitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        manager = EscrowManager()
        manager.confirm_quality(
            order_id,
            buyer=request.user,
            rating=serializer.validated_data["quality_rating"],
            notes=serializer.validated_data.get("quality_notes"),
        )
        escrow_status = manager.get_status(order_id, viewer=request.user)
        return Response(EscrowStatusSerializer(escrow_status).data)


class OrdersByReferenceView(APIView):
    """The caller's orders created by one checkout; empty for anyone else."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={200: OpenApiResponse(description="{orders, count, reference}")},
        tags=["Orders"],
    )
    def get(self, request, reference: str):
        orders = list(
            Order.objects.filter(reference=reference, buyer=request.user).order_by("created_at")
        )
        return Response(
            {
                "orders": OrderSerializer(orders, many=True).data,
                "count": len(orders),
                "reference": reference,
            }
        )
