"""
Shipping dispatcher interface and value types.

A dispatcher turns a paid order's addresses and package into a carrier
shipment. Implementations raise ShippingDispatchError on failure; callers
decide whether to retry using ``is_retryable``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

# Every marketplace item ships as one standard parcel.
DEFAULT_PACKAGE = {
    "weight": 1.0,
    "length": 30,
    "width": 20,
    "height": 15,
}


@dataclass
class ShipmentSpec:
    """
    Everything the carrier needs for one label.

    Attributes:
        ship_from: Dispatch address (name, phone, email, address, city, state)
        ship_to: Delivery address, same keys
        package: weight (kg), length/width/height (cm), value, description
        service: Carrier service level
    """

    ship_from: dict[str, Any]
    ship_to: dict[str, Any]
    package: dict[str, Any]
    service: str = "standard"
    callback_url: str = ""

    def __post_init__(self) -> None:
        for label, address in (("ship_from", self.ship_from), ("ship_to", self.ship_to)):
            missing = [key for key in ("address", "city", "state") if not address.get(key)]
            if missing:
                raise ValueError(f"{label} is missing {', '.join(missing)}")

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ShipmentSpec:
        return cls(
            ship_from=payload.get("ship_from") or {},
            ship_to=payload.get("ship_to") or {},
            package=payload.get("package") or dict(DEFAULT_PACKAGE),
            service=payload.get("service") or "standard",
            callback_url=payload.get("callback_url") or "",
        )


@dataclass
class ShipmentResult:
    shipment_id: str
    tracking_code: str = ""
    tracking_url: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


class ShippingDispatcher(ABC):
    """Boundary to a carrier that creates shipments."""

    @abstractmethod
    def create_shipment(self, spec: ShipmentSpec) -> ShipmentResult:
        """
        Create a shipment for spec.

        Raises:
            ShippingDispatchError: The carrier rejected or could not be reached
        """
