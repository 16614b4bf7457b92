"""Domain models for pricing configurations and calculation records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Union


@dataclass(frozen=True, slots=True)
class Coordinates:
    """A WGS84 point."""

    lat: float
    lng: float

    def rounded(self, precision: int) -> tuple[float, float]:
        return (round(self.lat, precision), round(self.lng, precision))


class AdjustmentType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


@dataclass(frozen=True, slots=True)
class Adjustment:
    """Change applied to the base rate: a currency delta or a signed percentage."""

    type: AdjustmentType
    value: Decimal

    @classmethod
    def none(cls) -> "Adjustment":
        return cls(AdjustmentType.PERCENTAGE, Decimal("0"))


@dataclass(frozen=True, slots=True)
class Zone:
    """Travel-time band [min_travel_minutes, max_travel_minutes) with its adjustment."""

    id: str
    min_travel_minutes: float
    max_travel_minutes: Optional[float]
    adjustment: Adjustment
    priority: int = 0
    name: str = ""
    description: str = ""
    available_services: Optional[tuple[str, ...]] = None

    def contains(self, travel_minutes: float) -> bool:
        if travel_minutes < self.min_travel_minutes:
            return False
        return self.max_travel_minutes is None or travel_minutes < self.max_travel_minutes


@dataclass(frozen=True, slots=True)
class ZoneSchedule:
    kind: ClassVar[str] = "zones"

    zones: tuple[Zone, ...]


@dataclass(frozen=True, slots=True)
class PostalCodeRule:
    """Exact postal/ZIP code rule. `code` is stored normalized."""

    code: str
    adjustment: Adjustment
    description: str = ""
    is_active: bool = True
    available_services: Optional[tuple[str, ...]] = None


@dataclass(frozen=True, slots=True)
class RegionRule:
    """Pattern rule covering a region of codes (regex search or plain prefix)."""

    id: str
    pattern: str
    adjustment: Adjustment
    priority: int = 0
    name: str = ""
    match_type: str = "regex"
    description: str = ""
    is_active: bool = True
    available_services: Optional[tuple[str, ...]] = None


@dataclass(frozen=True, slots=True)
class DefaultRule:
    adjustment: Adjustment
    description: str = "Standard service area"
    available_services: Optional[tuple[str, ...]] = None


@dataclass(frozen=True, slots=True)
class PostalRuleSet:
    kind: ClassVar[str] = "postal"

    exact_rules: tuple[PostalCodeRule, ...] = ()
    region_rules: tuple[RegionRule, ...] = ()
    default_rule: Optional[DefaultRule] = None


Schedule = Union[ZoneSchedule, PostalRuleSet]


@dataclass(frozen=True, slots=True)
class ServiceRule:
    """Per-service availability and surcharge layered on top of the zone adjustment."""

    service_type: str
    zone_ids: Optional[tuple[str, ...]] = None
    additional_fee_percentage: Decimal = Decimal("0")
    rate: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class PricingConfig:
    """One immutable version of a business's pricing configuration."""

    business_id: str
    version: int
    effective_date: datetime
    base_rate_per_area_unit: Decimal
    currency: str
    minimum_charge: Decimal
    schedule: Schedule
    expiry_date: Optional[datetime] = None
    is_active: bool = True
    service_rules: tuple[ServiceRule, ...] = ()
    origin: Optional[Coordinates] = None
    origin_address: Optional[str] = None
    no_service_message: Optional[str] = None
    contact_sales_link: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_effective(self, now: datetime) -> bool:
        if not self.is_active or self.effective_date > now:
            return False
        return self.expiry_date is None or now < self.expiry_date

    def service_rule_for(self, service_type: str) -> Optional[ServiceRule]:
        for rule in self.service_rules:
            if rule.service_type == service_type:
                return rule
        return None


@dataclass(slots=True)
class CalculationRecord:
    """Audit record of one completed calculation."""

    calculation_id: str
    business_id: str
    config_version: int
    created_at: datetime
    input_address: Optional[str]
    input_coordinates: Optional[Coordinates]
    resolved_coordinates: Optional[Coordinates]
    postal_code: Optional[str]
    travel_minutes: Optional[float]
    distance_meters: Optional[float]
    travel_from_cache: bool
    matched_id: Optional[str]
    in_service_area: bool
    services: list[dict] = field(default_factory=list)
    total_price: Optional[str] = None
    currency: Optional[str] = None
    processing_time_ms: float = 0.0
    converted_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        def _coords(value: Optional[Coordinates]) -> Optional[dict]:
            return {"lat": value.lat, "lng": value.lng} if value else None

        return {
            "calculation_id": self.calculation_id,
            "business_id": self.business_id,
            "config_version": self.config_version,
            "created_at": self.created_at.isoformat(),
            "input_address": self.input_address,
            "input_coordinates": _coords(self.input_coordinates),
            "resolved_coordinates": _coords(self.resolved_coordinates),
            "postal_code": self.postal_code,
            "travel_minutes": self.travel_minutes,
            "distance_meters": self.distance_meters,
            "travel_from_cache": self.travel_from_cache,
            "matched_id": self.matched_id,
            "in_service_area": self.in_service_area,
            "services": self.services,
            "total_price": self.total_price,
            "currency": self.currency,
            "processing_time_ms": self.processing_time_ms,
            "converted_at": self.converted_at.isoformat() if self.converted_at else None,
        }
