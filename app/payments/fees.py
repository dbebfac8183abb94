"""
Fee calculation for marketplace checkouts.

The service fee is charged on item value only, never on shipping or
insurance, and is withheld from the seller's payout:

    service_fee     = round_half_up(base_amount * rate(tier))
    seller_receives = base_amount - service_fee
    total_amount    = base_amount + shipping_fee + insurance_fee

so total_amount == seller_receives + service_fee + shipping_fee + insurance_fee
holds exactly for every input.

Amounts are Decimal in major currency units. The service fee is rounded
half-up to whole units (Python's round() is banker's rounding and would
turn 21,312.5 into 21,312).

Usage:
    from payments.fees import ShippingTier, calculate_fees

    breakdown = calculate_fees(
        Decimal("852500"), ShippingTier.BASIC_DELIVERY, shipping_fee=Decimal("1200")
    )
    breakdown.service_fee   # Decimal("21313")
    breakdown.total_amount  # Decimal("853700")
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from payments.exceptions import PaymentValidationError

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")
MINOR_UNIT = Decimal("0.01")


class ShippingTier(str, Enum):
    """Fee tier derived from shipping method and verification level."""

    SELF_ARRANGED = "self-arranged"
    BASIC_DELIVERY = "basic-delivery"
    PREMIUM_DELIVERY = "premium-delivery"


SERVICE_FEE_RATES: dict[ShippingTier, Decimal] = {
    ShippingTier.SELF_ARRANGED: Decimal("0"),
    ShippingTier.BASIC_DELIVERY: Decimal("0.025"),
    ShippingTier.PREMIUM_DELIVERY: Decimal("0.045"),
}


@dataclass(frozen=True)
class FeeBreakdown:
    """Priced checkout. All fields are Decimal in major currency units."""

    base_amount: Decimal
    service_fee: Decimal
    shipping_fee: Decimal
    insurance_fee: Decimal
    seller_receives: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict[str, str]:
        """String-valued dict for JSON payloads and intent metadata."""
        return {key: str(value) for key, value in asdict(self).items()}


def service_fee_rate(tier: ShippingTier | str) -> Decimal:
    return SERVICE_FEE_RATES[ShippingTier(tier)]


def tier_for(shipping_method: str, verification_level: str | None = None) -> ShippingTier:
    """
    Map checkout request fields to a fee tier.

    Self-arranged shipping is always the self-arranged tier. Carrier
    shipping uses the verification level, defaulting to basic.
    """
    if shipping_method == "self-arranged" or verification_level == "self-arranged":
        return ShippingTier.SELF_ARRANGED
    if verification_level == "premium":
        return ShippingTier.PREMIUM_DELIVERY
    return ShippingTier.BASIC_DELIVERY


def calculate_fees(
    base_amount: Decimal,
    tier: ShippingTier | str,
    shipping_fee: Decimal = ZERO,
    insurance_fee: Decimal = ZERO,
) -> FeeBreakdown:
    """
    Price a checkout.

    Raises:
        PaymentValidationError: If any input amount is negative
    """
    base_amount = Decimal(base_amount)
    shipping_fee = Decimal(shipping_fee or 0)
    insurance_fee = Decimal(insurance_fee or 0)

    negatives = {
        name: str(value)
        for name, value in (
            ("base_amount", base_amount),
            ("shipping_fee", shipping_fee),
            ("insurance_fee", insurance_fee),
        )
        if value < 0
    }
    if negatives:
        raise PaymentValidationError(
            "Amounts must not be negative",
            error_code="NEGATIVE_AMOUNT",
            details=negatives,
        )

    service_fee = (base_amount * service_fee_rate(tier)).quantize(
        WHOLE_UNIT, rounding=ROUND_HALF_UP
    )

    return FeeBreakdown(
        base_amount=base_amount,
        service_fee=service_fee,
        shipping_fee=shipping_fee,
        insurance_fee=insurance_fee,
        seller_receives=base_amount - service_fee,
        total_amount=base_amount + shipping_fee + insurance_fee,
    )


def split_evenly(amount: Decimal, parts: int) -> list[Decimal]:
    """
    Split amount into parts shares that sum exactly to amount.

    Shares differ by at most one minor unit; the leftover minor units go to
    the first shares.

        split_evenly(Decimal("100.00"), 3) -> [33.34, 33.33, 33.33]
    """
    if parts <= 0:
        raise PaymentValidationError(
            "Cannot split an amount into zero parts",
            details={"parts": parts},
        )

    minor = int((Decimal(amount) / MINOR_UNIT).to_integral_value(rounding=ROUND_HALF_UP))
    share, remainder = divmod(minor, parts)
    return [
        (Decimal(share + (1 if index < remainder else 0)) * MINOR_UNIT).quantize(MINOR_UNIT)
        for index in range(parts)
    ]


def split_evenly_capped(amount: Decimal, caps: list[Decimal]) -> list[Decimal]:
    """
    Split amount evenly like split_evenly, but never give a share more than
    its cap; whatever a capped share cannot hold is spread over the rest.

    Used for the service fee, which must not exceed the value of the line it
    is withheld from:

        split_evenly_capped(Decimal("225"), [Decimal("10000"), Decimal("100")])
            -> [125.00, 100.00]

    Raises:
        PaymentValidationError: amount exceeds the sum of the caps
    """
    amount = Decimal(amount).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)
    caps = [Decimal(cap).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP) for cap in caps]
    if amount > sum(caps, ZERO):
        raise PaymentValidationError(
            "Amount exceeds what the shares can hold",
            details={"amount": str(amount), "capacity": str(sum(caps, ZERO))},
        )

    shares = [ZERO for _ in caps]
    remaining = amount
    while remaining > 0:
        open_indexes = [index for index, cap in enumerate(caps) if shares[index] < cap]
        for index, portion in zip(open_indexes, split_evenly(remaining, len(open_indexes))):
            taken = min(portion, caps[index] - shares[index])
            shares[index] += taken
            remaining -= taken
    return [share.quantize(MINOR_UNIT) for share in shares]
