"""
Shipbubble carrier integration.

Creates labels with POST /v1/shipping/labels. Calls go through a shared
circuit breaker so a carrier outage does not tie up every dispatch worker
for the full timeout.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from django.conf import settings

from core.circuit_breaker import CircuitBreaker, CircuitOpenError
from orders.exceptions import ShippingDispatchError
from orders.shipping.base import ShipmentResult, ShipmentSpec, ShippingDispatcher

logger = logging.getLogger(__name__)

LABELS_PATH = "/v1/shipping/labels"

carrier_circuit = CircuitBreaker("shipbubble", failure_threshold=5, recovery_timeout=120)


class ShipbubbleDispatcher(ShippingDispatcher):
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        circuit: CircuitBreaker | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SHIPBUBBLE_API_KEY
        self.base_url = (base_url or settings.SHIPBUBBLE_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.SHIPBUBBLE_TIMEOUT_SECONDS
        self.circuit = circuit or carrier_circuit
        self._transport = transport

    def create_shipment(self, spec: ShipmentSpec) -> ShipmentResult:
        if not self.api_key:
            raise ShippingDispatchError(
                "Carrier API key is not configured",
                error_code="CARRIER_NOT_CONFIGURED",
                is_retryable=False,
            )

        log_context = {
            "operation": "create_shipment",
            "city": spec.ship_to.get("city"),
            "service": spec.service,
        }
        start_time = time.time()

        try:
            with self.circuit.call():
                with self._client() as client:
                    response = client.post(LABELS_PATH, json=spec.to_payload())
                if response.status_code >= 500:
                    raise ShippingDispatchError(
                        "Carrier is unavailable",
                        details={"status_code": response.status_code},
                    )
        except CircuitOpenError as e:
            logger.warning("Carrier circuit open, skipping dispatch", extra=log_context)
            raise ShippingDispatchError(e.message, error_code="CARRIER_CIRCUIT_OPEN")
        except httpx.TimeoutException:
            logger.error("Carrier request timed out", extra=log_context)
            raise ShippingDispatchError("Carrier timed out", error_code="CARRIER_TIMEOUT")
        except httpx.HTTPError as e:
            logger.error("Could not reach carrier", extra={**log_context, "error": str(e)})
            raise ShippingDispatchError(f"Could not reach carrier: {e}")

        duration_ms = (time.time() - start_time) * 1000
        body = self._json(response)

        if response.status_code >= 400:
            logger.warning(
                "Carrier rejected shipment",
                extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
            )
            raise ShippingDispatchError(
                body.get("message") or "Carrier rejected the shipment",
                error_code="CARRIER_REJECTED",
                details={"status_code": response.status_code},
                is_retryable=False,
            )

        data = body.get("data") or body
        shipment_id = data.get("shipment_id") or data.get("order_id")
        if not shipment_id:
            raise ShippingDispatchError(
                "Carrier response did not include a shipment id",
                error_code="CARRIER_BAD_RESPONSE",
            )

        tracking_code = data.get("tracking_reference") or data.get("tracking_code") or ""
        logger.info(
            "Carrier shipment created",
            extra={**log_context, "shipment_id": shipment_id, "duration_ms": duration_ms},
        )
        return ShipmentResult(
            shipment_id=str(shipment_id),
            tracking_code=str(tracking_code),
            tracking_url=data.get("tracking_url") or "",
            raw=data,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


def get_dispatcher() -> ShippingDispatcher:
    return ShipbubbleDispatcher()
