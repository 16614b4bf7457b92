"""Pydantic models shared by pricing and configuration endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from ..models.domain import Adjustment, AdjustmentType, Coordinates


class CoordinatesModel(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)

    def to_domain(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)

    @classmethod
    def from_domain(cls, value: Coordinates) -> "CoordinatesModel":
        return cls(lat=value.lat, lng=value.lng)


class AdjustmentModel(BaseModel):
    type: Literal["fixed", "percentage"] = "percentage"
    value: Decimal = Field(default=Decimal("0"), description="Signed: negative for a discount.")

    def to_domain(self) -> Adjustment:
        return Adjustment(type=AdjustmentType(self.type), value=self.value)

    @classmethod
    def from_domain(cls, value: Adjustment) -> "AdjustmentModel":
        return cls(type=value.type.value, value=value.value)
