"""Geocoding domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ...models.domain import Coordinates


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    coordinates: Coordinates
    formatted_address: str
    postal_code: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


class Geocoder(Protocol):
    """Resolves free-form addresses, raising GeocodeFailure on zero results or transport errors."""

    name: str

    def resolve(self, address: str) -> GeocodeResult:
        ...

    def reverse(self, coordinates: Coordinates) -> GeocodeResult:
        ...
