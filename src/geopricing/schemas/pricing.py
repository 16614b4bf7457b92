"""Request/response schemas for geopricing calculations."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .common import CoordinatesModel


class ServiceRequest(BaseModel):
    type: str = Field(..., min_length=1)
    area: Optional[float] = Field(default=None, ge=0, description="Defaults to the property size when omitted.")
    custom_rate: Optional[float] = Field(default=None, ge=0, description="Overrides the rate per 1,000 area units.")


class CalculateOptions(BaseModel):
    use_cache: bool = True
    traffic_model: Optional[str] = Field(default=None, description="best_guess, pessimistic or optimistic.")
    persist: bool = Field(default=True, description="Write the calculation record to the configured store.")
    include_rate_table: bool = False


class LocationRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    address: Optional[str] = None
    coordinates: Optional[CoordinatesModel] = None
    postal_code: Optional[str] = None
    options: CalculateOptions = Field(default_factory=CalculateOptions)

    @model_validator(mode="after")
    def _require_location(self) -> "LocationRequest":
        if not (self.address and self.address.strip()) and self.coordinates is None and not self.postal_code:
            raise ValueError("One of address, coordinates or postal_code is required.")
        return self


class CalculateRequest(LocationRequest):
    property_size_area_units: float = Field(..., ge=0)
    services: List[ServiceRequest] = Field(default_factory=list)


class AvailabilityRequest(LocationRequest):
    """Location-only check; no per-service pricing."""


class BatchCalculateRequest(BaseModel):
    requests: List[CalculateRequest] = Field(..., min_length=1, max_length=100)


class MatchedZoneModel(BaseModel):
    id: str
    name: str
    adjustment_type: str
    adjustment_value: float
    source: str
    description: str = ""


class TravelTimeModel(BaseModel):
    minutes: float
    distance_meters: float
    distance_text: str = ""
    from_cache: bool = False
    provider: str = ""


class ServicePriceModel(BaseModel):
    type: str
    base_rate: float
    adjusted_rate: float
    area: float
    total_price: float
    available: bool
    additional_fee_percentage: float = 0.0
    minimum_applied: bool = False


class RateTableRowModel(BaseModel):
    id: str
    name: str
    adjustment_label: str
    adjusted_rate: float
    total_price: float
    is_customer_zone: bool


class ErrorModel(BaseModel):
    code: str
    message: str
    retryable: bool = False


class AvailabilityResponse(BaseModel):
    success: bool
    business_id: str
    in_service_area: bool = False
    config_version: Optional[int] = None
    matched_zone_or_rule: Optional[MatchedZoneModel] = None
    travel_time: Optional[TravelTimeModel] = None
    postal_code: Optional[str] = None
    resolved_address: Optional[str] = None
    resolved_coordinates: Optional[CoordinatesModel] = None
    explanation: Optional[str] = None
    no_service_message: Optional[str] = Field(default=None, description="Set only outside the service area.")
    contact_sales_link: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    errors: Optional[ErrorModel] = None


class CalculateResponse(AvailabilityResponse):
    calculation_id: Optional[str] = None
    currency: Optional[str] = None
    services: List[ServicePriceModel] = Field(default_factory=list)
    total_price: Optional[float] = None
    rate_table: Optional[List[RateTableRowModel]] = None
    record: Optional[dict] = None


class BatchCalculateResponse(BaseModel):
    results: List[CalculateResponse]
