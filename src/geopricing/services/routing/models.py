"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ...models.domain import Coordinates


@dataclass(frozen=True, slots=True)
class TravelTime:
    minutes: float
    distance_meters: float
    distance_text: str
    duration_text: str
    provider: str


class TravelTimeProvider(Protocol):
    """Returns drive time between two points or raises RoutingFailure."""

    name: str

    def travel_time(
        self,
        origin: Coordinates,
        destination: Coordinates,
        *,
        traffic_model: Optional[str] = None,
    ) -> TravelTime:
        ...


def format_distance(distance_meters: float) -> str:
    return f"{distance_meters / 1000.0:.1f} km"


def format_duration(minutes: float) -> str:
    whole = max(1, round(minutes))
    return f"{whole} min" if whole == 1 else f"{whole} mins"
