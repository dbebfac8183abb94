"""
URL configuration for the payments app.

Routes:
    - POST /pay/cart - Start a wallet, card or hybrid checkout
    - GET /pay/intents/<reference> - Poll a payment's status
    - POST /wallet/fund - Top up the wallet by card
    - POST /webhook/gateway - Card gateway webhook endpoint

Mounted at /api/v1/ by the main URLconf.
"""

from django.urls import path

from payments.views import FundWalletView, PayCartView, PaymentIntentDetailView
from payments.webhooks.views import gateway_webhook

app_name = "payments"

urlpatterns = [
    path("pay/cart", PayCartView.as_view(), name="pay-cart"),
    path("pay/intents/<str:reference>", PaymentIntentDetailView.as_view(), name="intent-detail"),
    path("wallet/fund", FundWalletView.as_view(), name="wallet-fund"),
    # Webhook endpoints
    path("webhook/gateway", gateway_webhook, name="gateway-webhook"),
]
