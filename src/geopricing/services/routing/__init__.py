"""Travel-time providers."""

from ...config import settings
from .distance_matrix import DistanceMatrixClient, StraightLineEstimator
from .models import TravelTime, TravelTimeProvider
from .osrm_client import OSRMClient


def get_travel_time_provider(name: str | None = None) -> TravelTimeProvider:
    match name or settings.travel_time_provider:
        case "osrm":
            return OSRMClient()
        case "google":
            return DistanceMatrixClient()
        case "estimate":
            return StraightLineEstimator()
        case other:
            raise ValueError(f"Unknown travel time provider '{other}'.")


__all__ = [
    "DistanceMatrixClient",
    "OSRMClient",
    "StraightLineEstimator",
    "TravelTime",
    "TravelTimeProvider",
    "get_travel_time_provider",
]
