"""
URL configuration for the orders app.

Routes:
    - GET /<order_id>/escrow-status - Escrow status projection
    - POST /<order_id>/confirm-quality - Buyer quality confirmation
    - GET /by-reference/<reference> - The buyer's orders from one checkout

Mounted at /api/v1/orders/ by the main URLconf.
"""

from django.urls import path

from orders.views import ConfirmQualityView, EscrowStatusView, OrdersByReferenceView

app_name = "orders"

urlpatterns = [
    path("by-reference/<str:reference>", OrdersByReferenceView.as_view(), name="by-reference"),
    path("<uuid:order_id>/escrow-status", EscrowStatusView.as_view(), name="escrow-status"),
    path("<uuid:order_id>/confirm-quality", ConfirmQualityView.as_view(), name="confirm-quality"),
]
