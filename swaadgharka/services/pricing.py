"""Order pricing.

Pure functions only: no database, no clock, no randomness. The same lines and
configuration always produce the same breakdown, which is what lets the API
ignore client-submitted totals and recompute them on every order.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Sequence

from swaadgharka.core.config import DELIVERY_FEE, FREE_DELIVERY_THRESHOLD, PACKAGING_FEE, TAX_RATE
from swaadgharka.core.choices import MAX_LINE_QUANTITY, ORDER_TYPES
from swaadgharka.core.errors import ValidationFailed


@dataclass(frozen=True)
class PricingConfig:
    tax_rate: Decimal = TAX_RATE
    delivery_fee: int = DELIVERY_FEE
    free_delivery_threshold: int = FREE_DELIVERY_THRESHOLD
    packaging_fee: int = PACKAGING_FEE


@dataclass(frozen=True)
class Customization:
    name: str
    option: str
    extra_cost: int = 0


@dataclass(frozen=True)
class PricedLine:
    unit_price: int
    quantity: int
    customizations_per_unit: int
    line_total: int


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    tax: int
    delivery_fee: int
    packaging_fee: int
    discount: int
    total: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _extra_cost(customization: Any) -> int:
    if isinstance(customization, dict):
        raw = customization.get("extra_cost", 0)
    else:
        raw = getattr(customization, "extra_cost", 0)
    try:
        cost = int(raw or 0)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed("Customization extra cost must be a whole number") from exc
    if cost < 0:
        raise ValidationFailed("Customization extra cost cannot be negative")
    return cost


def price_line(unit_price: int, quantity: int, customizations: Iterable[Any] = ()) -> PricedLine:
    """unit_price * quantity plus every per-unit customization cost times quantity."""
    if unit_price <= 0:
        raise ValidationFailed("Unit price must be positive")
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise ValidationFailed(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}")

    per_unit_extras = sum(_extra_cost(customization) for customization in customizations)
    return PricedLine(
        unit_price=unit_price,
        quantity=quantity,
        customizations_per_unit=per_unit_extras,
        line_total=unit_price * quantity + per_unit_extras * quantity,
    )


def delivery_fee_for(subtotal: int, order_type: str, config: PricingConfig) -> int:
    if order_type == "pickup":
        return 0
    if subtotal > config.free_delivery_threshold:
        return 0
    return config.delivery_fee


def price_order(
    lines: Sequence[PricedLine],
    order_type: str,
    config: PricingConfig | None = None,
    *,
    discount: int = 0,
) -> PriceBreakdown:
    config = config or PricingConfig()
    if order_type not in ORDER_TYPES:
        raise ValidationFailed(f"Unknown order type: {order_type}")
    if not lines:
        raise ValidationFailed("Order must contain at least one item")

    subtotal = sum(line.line_total for line in lines)
    tax = round_half_up(Decimal(subtotal) * config.tax_rate)
    delivery_fee = delivery_fee_for(subtotal, order_type, config)
    packaging_fee = config.packaging_fee

    gross = subtotal + tax + delivery_fee + packaging_fee
    if discount < 0 or discount > gross:
        raise ValidationFailed("Discount must be between 0 and the order amount")

    return PriceBreakdown(
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee,
        packaging_fee=packaging_fee,
        discount=discount,
        total=gross - discount,
    )
