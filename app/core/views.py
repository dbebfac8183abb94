"""
Infrastructure endpoints that sit outside the marketplace API.
"""

from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse


def health_check(request):
    """
    Liveness/readiness probe for load balancers and container orchestration.

    The database is required. The cache (which also backs the carrier
    circuit breaker) only degrades the response; wallet and escrow
    operations do not depend on it. The carrier circuit state is reported
    so an outage shows up without digging through logs.

    Returns:
        200 {"status": "healthy", "database": "connected", "cache": ..., "carrier": ...}
        503 when the database cannot be reached
    """
    from orders.shipping.shipbubble import carrier_circuit

    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "carrier": "unknown",
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"

    try:
        cache.set("health_check", "ok", timeout=1)
        health_status["cache"] = "connected" if cache.get("health_check") == "ok" else "disconnected"
        health_status["carrier"] = carrier_circuit.state.value
    except Exception:
        health_status["cache"] = "disconnected"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JsonResponse(health_status, status=status_code)
