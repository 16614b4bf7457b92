"""Monetary math for zone-adjusted service prices.

All arithmetic is done on unrounded Decimals; values are rounded half-up to
cents only when they are rendered, so errors do not compound across services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence, Union

from ...models.domain import Adjustment, AdjustmentType, PricingConfig
from ..zoning.base import ZoneMatch

CENT = Decimal("0.01")
# Rates are quoted per 1,000 area units (e.g. per 1,000 sq ft).
AREA_UNITS_PER_RATE = Decimal("1000")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def apply_adjustment(rate: Decimal, adjustment: Adjustment) -> Decimal:
    if adjustment.type is AdjustmentType.FIXED:
        return rate + adjustment.value
    return rate * (1 + adjustment.value / HUNDRED)


def apply_percentage(rate: Decimal, percentage: Decimal) -> Decimal:
    return rate * (1 + percentage / HUNDRED)


@dataclass(frozen=True, slots=True)
class ServicePrice:
    service_type: str
    area: Decimal
    base_rate: Decimal
    adjusted_rate: Decimal
    raw_price: Decimal
    total_price: Decimal
    available: bool = True
    additional_fee_percentage: Decimal = ZERO
    minimum_applied: bool = False

    def as_dict(self) -> dict:
        """Output form: currency values rounded to cents."""
        return {
            "type": self.service_type,
            "area": float(self.area),
            "base_rate": float(round_currency(self.base_rate)),
            "adjusted_rate": float(round_currency(self.adjusted_rate)),
            "total_price": float(round_currency(self.total_price)),
            "available": self.available,
            "additional_fee_percentage": float(self.additional_fee_percentage),
            "minimum_applied": self.minimum_applied,
        }


@dataclass(slots=True)
class PriceBreakdown:
    currency: str
    services: list[ServicePrice] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((s.total_price for s in self.services if s.available), ZERO)

    @property
    def rounded_total(self) -> Decimal:
        return round_currency(self.total)


def price_service(
    *,
    base_rate: Number,
    area: Number,
    adjustment: Adjustment,
    minimum_charge: Number,
    additional_fee_percentage: Number = ZERO,
    service_type: str = "base",
) -> ServicePrice:
    """Price one service: adjusted rate, then area/1000 * rate, floored at the minimum charge."""
    base = to_decimal(base_rate)
    fee = to_decimal(additional_fee_percentage)
    size = to_decimal(area)
    minimum = to_decimal(minimum_charge)

    adjusted = apply_adjustment(base, adjustment)
    if fee:
        adjusted = apply_percentage(adjusted, fee)
    adjusted = max(adjusted, ZERO)

    raw = (size / AREA_UNITS_PER_RATE) * adjusted
    final = max(raw, minimum, ZERO)
    return ServicePrice(
        service_type=service_type,
        area=size,
        base_rate=base,
        adjusted_rate=adjusted,
        raw_price=raw,
        total_price=final,
        additional_fee_percentage=fee,
        minimum_applied=final > raw,
    )


@dataclass(frozen=True, slots=True)
class ServiceLine:
    service_type: str
    area: Optional[float] = None
    custom_rate: Optional[float] = None


def calculate_prices(
    config: PricingConfig,
    match: ZoneMatch,
    services: Sequence[ServiceLine],
    property_size: Number,
) -> PriceBreakdown:
    """Price each requested service in the matched zone.

    With no services requested, a single `base` service is priced on the
    property size. Services the zone does not offer are returned with
    `available=False` and no price.
    """
    lines = list(services) or [ServiceLine(service_type="base")]
    breakdown = PriceBreakdown(currency=config.currency)
    for line in lines:
        rule = config.service_rule_for(line.service_type)
        if line.custom_rate is not None:
            base_rate = to_decimal(line.custom_rate)
        elif rule is not None and rule.rate is not None:
            base_rate = rule.rate
        else:
            base_rate = config.base_rate_per_area_unit
        area = to_decimal(line.area) if line.area else to_decimal(property_size)

        if not match.offers(line.service_type, rule):
            breakdown.services.append(
                ServicePrice(
                    service_type=line.service_type,
                    area=area,
                    base_rate=base_rate,
                    adjusted_rate=base_rate,
                    raw_price=ZERO,
                    total_price=ZERO,
                    available=False,
                )
            )
            continue

        breakdown.services.append(
            price_service(
                base_rate=base_rate,
                area=area,
                adjustment=match.adjustment,
                minimum_charge=config.minimum_charge,
                additional_fee_percentage=rule.additional_fee_percentage if rule else ZERO,
                service_type=line.service_type,
            )
        )
    return breakdown
