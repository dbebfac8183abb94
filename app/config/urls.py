"""
Root URL configuration.

URL Structure:
    /                                      - ReDoc API documentation
    /schema/                               - OpenAPI schema
    /admin/                                - Django admin
    /health/                               - Health check (load balancers)
    /api/v1/
        pay/cart                           - Pay for a cart (wallet/card/hybrid)
        pay/intents/<reference>            - Payment intent status
        webhook/gateway                    - Card gateway webhook (POST)
        orders/<id>/escrow-status          - Escrow status for buyer/seller
        orders/<id>/confirm-quality        - Buyer confirms quality, releases escrow
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("", include("payments.urls")),
    path("orders/", include("orders.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Marketplace Payments Admin"
admin.site.site_title = "Marketplace Payments"
admin.site.index_title = "Payments, wallets and escrow"
