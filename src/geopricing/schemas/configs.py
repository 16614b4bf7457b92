"""Schemas for creating and reading versioned pricing configurations."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import (
    DefaultRule,
    PostalCodeRule,
    PostalRuleSet,
    PricingConfig,
    RegionRule,
    Schedule,
    ServiceRule,
    Zone,
    ZoneSchedule,
)
from .common import AdjustmentModel, CoordinatesModel

DEFAULT_NO_SERVICE_MESSAGE = "Sorry, we do not currently service this location."


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _services(values: Optional[List[str]]) -> Optional[tuple[str, ...]]:
    return tuple(values) if values is not None else None


class ZoneModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    description: str = ""
    min_travel_minutes: float = Field(..., ge=0)
    max_travel_minutes: Optional[float] = Field(default=None, gt=0, description="Null means unbounded.")
    adjustment: AdjustmentModel = Field(default_factory=AdjustmentModel)
    priority: int = Field(default=0, description="Lower wins when zones overlap.")
    available_services: Optional[List[str]] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "ZoneModel":
        if self.max_travel_minutes is not None and self.max_travel_minutes <= self.min_travel_minutes:
            raise ValueError(f"Zone '{self.id}': max_travel_minutes must exceed min_travel_minutes.")
        return self

    def to_domain(self) -> Zone:
        return Zone(
            id=self.id,
            min_travel_minutes=self.min_travel_minutes,
            max_travel_minutes=self.max_travel_minutes,
            adjustment=self.adjustment.to_domain(),
            priority=self.priority,
            name=self.name,
            description=self.description,
            available_services=_services(self.available_services),
        )


class ZoneScheduleModel(BaseModel):
    kind: Literal["zones"] = "zones"
    zones: List[ZoneModel] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_zones(self) -> "ZoneScheduleModel":
        ids = [zone.id for zone in self.zones]
        if len(ids) != len(set(ids)):
            raise ValueError("Zone ids must be unique within a configuration.")
        ordered = sorted(self.zones, key=lambda z: z.min_travel_minutes)
        for zone in ordered[:-1]:
            if zone.max_travel_minutes is None:
                raise ValueError(f"Only the last zone may be unbounded; '{zone.id}' is not last.")
        return self

    def to_domain(self) -> ZoneSchedule:
        return ZoneSchedule(zones=tuple(zone.to_domain() for zone in self.zones))


class PostalCodeRuleModel(BaseModel):
    code: str = Field(..., min_length=1)
    adjustment: AdjustmentModel = Field(default_factory=AdjustmentModel)
    description: str = ""
    is_active: bool = True
    available_services: Optional[List[str]] = None

    @field_validator("code")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return "".join(value.split()).upper()

    def to_domain(self) -> PostalCodeRule:
        return PostalCodeRule(
            code=self.code,
            adjustment=self.adjustment.to_domain(),
            description=self.description,
            is_active=self.is_active,
            available_services=_services(self.available_services),
        )


class RegionRuleModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    pattern: str = Field(..., min_length=1)
    match_type: Literal["regex", "prefix"] = "regex"
    adjustment: AdjustmentModel = Field(default_factory=AdjustmentModel)
    priority: int = Field(default=0, description="Higher wins.")
    description: str = ""
    is_active: bool = True
    available_services: Optional[List[str]] = None

    @model_validator(mode="after")
    def _check_pattern(self) -> "RegionRuleModel":
        if self.match_type == "regex":
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"Region rule '{self.id}' has an invalid pattern: {e}") from e
        return self

    def to_domain(self) -> RegionRule:
        return RegionRule(
            id=self.id,
            pattern=self.pattern,
            adjustment=self.adjustment.to_domain(),
            priority=self.priority,
            name=self.name,
            match_type=self.match_type,
            description=self.description,
            is_active=self.is_active,
            available_services=_services(self.available_services),
        )


class DefaultRuleModel(BaseModel):
    adjustment: AdjustmentModel = Field(default_factory=AdjustmentModel)
    description: str = "Standard service area"
    available_services: Optional[List[str]] = None

    def to_domain(self) -> DefaultRule:
        return DefaultRule(
            adjustment=self.adjustment.to_domain(),
            description=self.description,
            available_services=_services(self.available_services),
        )


class PostalRuleSetModel(BaseModel):
    kind: Literal["postal"] = "postal"
    exact_rules: List[PostalCodeRuleModel] = Field(default_factory=list)
    region_rules: List[RegionRuleModel] = Field(default_factory=list)
    default_rule: Optional[DefaultRuleModel] = None

    def to_domain(self) -> PostalRuleSet:
        return PostalRuleSet(
            exact_rules=tuple(rule.to_domain() for rule in self.exact_rules),
            region_rules=tuple(rule.to_domain() for rule in self.region_rules),
            default_rule=self.default_rule.to_domain() if self.default_rule else None,
        )


ScheduleModel = Annotated[Union[ZoneScheduleModel, PostalRuleSetModel], Field(discriminator="kind")]


class ServiceRuleModel(BaseModel):
    service_type: str = Field(..., min_length=1)
    zone_ids: Optional[List[str]] = Field(default=None, description="Zones offering the service; null means all.")
    additional_fee_percentage: Decimal = Decimal("0")
    rate: Optional[Decimal] = Field(default=None, ge=0)

    def to_domain(self) -> ServiceRule:
        return ServiceRule(
            service_type=self.service_type,
            zone_ids=_services(self.zone_ids),
            additional_fee_percentage=self.additional_fee_percentage,
            rate=self.rate,
        )


class PricingConfigCreate(BaseModel):
    """Payload for a new configuration version. The version number is assigned by the store."""

    base_rate_per_area_unit: Decimal = Field(..., ge=0, description="Rate per 1,000 area units.")
    currency: str = Field(default="CAD", min_length=3, max_length=3)
    minimum_charge: Decimal = Field(default=Decimal("0"), ge=0)
    schedule: ScheduleModel
    service_rules: List[ServiceRuleModel] = Field(default_factory=list)
    origin: Optional[CoordinatesModel] = None
    origin_address: Optional[str] = None
    effective_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    no_service_message: Optional[str] = Field(
        default=DEFAULT_NO_SERVICE_MESSAGE, description="Shown to customers outside every zone or rule."
    )
    contact_sales_link: Optional[str] = None
    created_by: Optional[str] = None
    expected_version: Optional[int] = Field(
        default=None,
        ge=0,
        description="Reject the write unless the latest stored version equals this.",
    )

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("effective_date", "expiry_date")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_config(self) -> "PricingConfigCreate":
        if isinstance(self.schedule, ZoneScheduleModel) and self.origin is None:
            raise ValueError("A travel-time zone schedule requires the business origin coordinates.")
        if self.effective_date and self.expiry_date and self.expiry_date <= self.effective_date:
            raise ValueError("expiry_date must be after effective_date.")
        return self

    def to_domain(self, business_id: str, version: int, now: datetime) -> PricingConfig:
        schedule: Schedule = self.schedule.to_domain()
        return PricingConfig(
            business_id=business_id,
            version=version,
            effective_date=self.effective_date or now,
            base_rate_per_area_unit=self.base_rate_per_area_unit,
            currency=self.currency,
            minimum_charge=self.minimum_charge,
            schedule=schedule,
            expiry_date=self.expiry_date,
            is_active=True,
            service_rules=tuple(rule.to_domain() for rule in self.service_rules),
            origin=self.origin.to_domain() if self.origin else None,
            origin_address=self.origin_address,
            created_by=self.created_by,
            created_at=now,
            no_service_message=self.no_service_message,
            contact_sales_link=self.contact_sales_link,
        )


class PricingConfigModel(BaseModel):
    """Stored configuration version as returned by the API."""

    business_id: str
    version: int
    is_active: bool
    effective_date: datetime
    expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    base_rate_per_area_unit: float
    currency: str
    minimum_charge: float
    schedule: ScheduleModel
    service_rules: List[ServiceRuleModel] = Field(default_factory=list)
    origin: Optional[CoordinatesModel] = None
    origin_address: Optional[str] = None
    no_service_message: Optional[str] = None
    contact_sales_link: Optional[str] = None

    @classmethod
    def from_domain(cls, config: PricingConfig) -> "PricingConfigModel":
        schedule = config.schedule
        if isinstance(schedule, ZoneSchedule):
            schedule_model: Union[ZoneScheduleModel, PostalRuleSetModel] = ZoneScheduleModel(
                zones=[
                    ZoneModel(
                        id=zone.id,
                        name=zone.name,
                        description=zone.description,
                        min_travel_minutes=zone.min_travel_minutes,
                        max_travel_minutes=zone.max_travel_minutes,
                        adjustment=AdjustmentModel.from_domain(zone.adjustment),
                        priority=zone.priority,
                        available_services=list(zone.available_services) if zone.available_services is not None else None,
                    )
                    for zone in schedule.zones
                ]
            )
        else:
            schedule_model = PostalRuleSetModel(
                exact_rules=[
                    PostalCodeRuleModel(
                        code=rule.code,
                        adjustment=AdjustmentModel.from_domain(rule.adjustment),
                        description=rule.description,
                        is_active=rule.is_active,
                        available_services=list(rule.available_services) if rule.available_services is not None else None,
                    )
                    for rule in schedule.exact_rules
                ],
                region_rules=[
                    RegionRuleModel(
                        id=rule.id,
                        name=rule.name,
                        pattern=rule.pattern,
                        match_type=rule.match_type,
                        adjustment=AdjustmentModel.from_domain(rule.adjustment),
                        priority=rule.priority,
                        description=rule.description,
                        is_active=rule.is_active,
                        available_services=list(rule.available_services) if rule.available_services is not None else None,
                    )
                    for rule in schedule.region_rules
                ],
                default_rule=DefaultRuleModel(
                    adjustment=AdjustmentModel.from_domain(schedule.default_rule.adjustment),
                    description=schedule.default_rule.description,
                    available_services=(
                        list(schedule.default_rule.available_services)
                        if schedule.default_rule.available_services is not None
                        else None
                    ),
                )
                if schedule.default_rule
                else None,
            )
        return cls(
            business_id=config.business_id,
            version=config.version,
            is_active=config.is_active,
            effective_date=config.effective_date,
            expiry_date=config.expiry_date,
            created_at=config.created_at,
            created_by=config.created_by,
            base_rate_per_area_unit=float(config.base_rate_per_area_unit),
            currency=config.currency,
            minimum_charge=float(config.minimum_charge),
            schedule=schedule_model,
            service_rules=[
                ServiceRuleModel(
                    service_type=rule.service_type,
                    zone_ids=list(rule.zone_ids) if rule.zone_ids is not None else None,
                    additional_fee_percentage=rule.additional_fee_percentage,
                    rate=rule.rate,
                )
                for rule in config.service_rules
            ],
            origin=CoordinatesModel.from_domain(config.origin) if config.origin else None,
            origin_address=config.origin_address,
            no_service_message=config.no_service_message,
            contact_sales_link=config.contact_sales_link,
        )
