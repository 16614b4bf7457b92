"""Rate table listing the price in every zone or postal rule of a config."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...models.domain import Adjustment, AdjustmentType, PostalRuleSet, PricingConfig, ZoneSchedule
from ..zoning.base import ZoneMatch
from .calculator import Number, price_service, round_currency


@dataclass(frozen=True, slots=True)
class RateTableRow:
    id: str
    name: str
    adjustment_label: str
    adjusted_rate: float
    total_price: float
    is_customer_zone: bool


def describe_adjustment(adjustment: Adjustment, currency: str = "") -> str:
    value = adjustment.value
    if value == 0:
        return "Base rate"
    if adjustment.type is AdjustmentType.FIXED:
        amount = f"{abs(value):g} {currency}".strip()
        return f"-{amount} discount" if value < 0 else f"+{amount} surcharge"
    return f"{value:g}% discount" if value < 0 else f"+{value:g}% surcharge"


def build_rate_table(config: PricingConfig, area: Number, matched_id: Optional[str] = None) -> list[RateTableRow]:
    entries: list[tuple[str, str, Adjustment]] = []
    schedule = config.schedule
    if isinstance(schedule, ZoneSchedule):
        for zone in sorted(schedule.zones, key=lambda z: z.min_travel_minutes):
            entries.append((zone.id, zone.name or zone.id, zone.adjustment))
    elif isinstance(schedule, PostalRuleSet):
        exact = sorted((r for r in schedule.exact_rules if r.is_active), key=lambda r: r.adjustment.value)
        entries.extend((r.code, r.code, r.adjustment) for r in exact)
        regions = sorted((r for r in schedule.region_rules if r.is_active), key=lambda r: -r.priority)
        entries.extend((r.id, r.name or r.id, r.adjustment) for r in regions)
        if schedule.default_rule is not None:
            entries.append(("default", "Default", schedule.default_rule.adjustment))

    rows: list[RateTableRow] = []
    for entry_id, name, adjustment in entries:
        price = price_service(
            base_rate=config.base_rate_per_area_unit,
            area=area,
            adjustment=adjustment,
            minimum_charge=config.minimum_charge,
        )
        rows.append(
            RateTableRow(
                id=entry_id,
                name=name,
                adjustment_label=describe_adjustment(adjustment, config.currency),
                adjusted_rate=float(round_currency(price.adjusted_rate)),
                total_price=float(round_currency(price.total_price)),
                is_customer_zone=entry_id == matched_id,
            )
        )
    return rows


def explain_match(
    match: ZoneMatch,
    currency: str,
    *,
    travel_minutes: Optional[float] = None,
    postal_code: Optional[str] = None,
) -> str:
    """Customer-facing sentence describing why this rate applies."""
    if travel_minutes is not None:
        where = f"Your property is {travel_minutes:.0f} minutes from our service location ({match.name})."
    elif postal_code:
        where = f"Your property in postal code {postal_code} falls in {match.name}."
    else:
        where = f"Your property falls in {match.name}."

    value = match.adjustment.value
    if value == 0:
        return f"{where} Standard base rate pricing applies."
    if match.adjustment.type is AdjustmentType.FIXED:
        amount = f"{abs(value):g} {currency} per 1,000 area units"
    else:
        amount = f"{abs(value):g}%"
    if value < 0:
        return f"{where} You qualify for a discount of {amount} off the base rate."
    return f"{where} A travel surcharge of {amount} applies to the base rate."
