"""
Payment API views.

URL Structure:
    /api/v1/pay/cart                    POST
    /api/v1/pay/intents/{reference}     GET
    /api/v1/wallet/fund                 POST

Views stay thin: validation happens in the serializers and the
orchestrator, and domain exceptions are rendered by
core.exceptions.application_exception_handler.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import (
    FundWalletSerializer,
    GatewayPaymentResponseSerializer,
    PayCartSerializer,
    PaymentIntentSerializer,
    WalletPaymentResponseSerializer,
)
from payments.services import PaymentOrchestrator, WalletPaymentResult

# Failed ServiceResult error codes that are not the client's fault.
ERROR_STATUS = {
    "GATEWAY_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_TIMEOUT": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_REQUEST_REJECTED": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
}


def get_orchestrator() -> PaymentOrchestrator:
    return PaymentOrchestrator()


class PayCartView(APIView):
    """
    Check out the caller's cart.

    Wallet payments complete immediately and return the created orders.
    Card and hybrid payments return an authorization URL; orders are
    created when the gateway confirms the charge.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=PayCartSerializer,
        responses={
            200: OpenApiResponse(description="Wallet orders or gateway redirect"),
            400: OpenApiResponse(description="Invalid cart, amount mismatch or insufficient funds"),
            502: OpenApiResponse(description="Card gateway unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = PayCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_orchestrator().pay_cart(
            serializer.to_params(request.user),
            method=serializer.validated_data["payment_method"],
        )

        if not result.success:
            return Response(
                result.to_response(),
                status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
            )

        if isinstance(result.data, WalletPaymentResult):
            body = WalletPaymentResponseSerializer(result.data).data
        else:
            body = GatewayPaymentResponseSerializer(result.data).data
        return Response(body, status=status.HTTP_200_OK)


class PaymentIntentDetailView(APIView):
    """Status of one of the caller's payments."""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: PaymentIntentSerializer}, tags=["Payments"])
    def get(self, request, reference: str):
        intent = get_orchestrator().get_intent(reference, user=request.user)
        return Response(PaymentIntentSerializer(intent).data)


class FundWalletView(APIView):
    """
    Top up the caller's wallet by card.

    Returns the gateway redirect. The wallet is credited when the gateway
    confirms the charge.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=FundWalletSerializer,
        responses={
            200: GatewayPaymentResponseSerializer,
            400: OpenApiResponse(description="Amount below the funding minimum"),
            502: OpenApiResponse(description="Card gateway unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = FundWalletSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_orchestrator().fund_wallet(request.user, serializer.validated_data["amount"])
        if not result.success:
            return Response(
                result.to_response(),
                status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
            )
        return Response(GatewayPaymentResponseSerializer(result.data).data, status=status.HTTP_200_OK)
