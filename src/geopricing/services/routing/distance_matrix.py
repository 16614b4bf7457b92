"""Google Distance Matrix client and a straight-line travel-time estimator."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ...config import settings
from ...errors import RoutingFailure
from ...models.domain import Coordinates
from ..geospatial import haversine_km
from .models import TravelTime, format_distance, format_duration

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
TRAFFIC_MODELS = ("best_guess", "pessimistic", "optimistic")

logger = logging.getLogger(__name__)


class DistanceMatrixClient:
    """Drive time from the Google Distance Matrix API, honouring traffic models."""

    name = "google"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
        base_url: str = DISTANCE_MATRIX_URL,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self.base_url = base_url
        self._client = client

    def travel_time(
        self,
        origin: Coordinates,
        destination: Coordinates,
        *,
        traffic_model: Optional[str] = None,
    ) -> TravelTime:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "mode": "driving",
            "units": "metric",
            "departure_time": "now",
            "traffic_model": traffic_model if traffic_model in TRAFFIC_MODELS else "best_guess",
            "key": self.api_key,
        }
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise RoutingFailure(f"Distance Matrix request timed out after {self.timeout:.1f}s.") from e
        except (httpx.HTTPError, ValueError) as e:
            raise RoutingFailure(f"Distance Matrix request failed: {e}") from e
        finally:
            if self._client is None:
                client.close()

        status = data.get("status")
        if status != "OK":
            # OVER_QUERY_LIMIT, REQUEST_DENIED, ...
            raise RoutingFailure(f"Distance Matrix API error: {status}")

        rows = data.get("rows") or [{}]
        elements = rows[0].get("elements") or [{}]
        element = elements[0]
        if element.get("status") != "OK":
            raise RoutingFailure(f"No route found: {element.get('status', 'UNKNOWN_ERROR')}")

        duration = element.get("duration_in_traffic") or element["duration"]
        minutes = float(duration["value"]) / 60.0
        distance = float(element["distance"]["value"])
        return TravelTime(
            minutes=minutes,
            distance_meters=distance,
            distance_text=element["distance"].get("text") or format_distance(distance),
            duration_text=duration.get("text") or format_duration(minutes),
            provider=self.name,
        )


class StraightLineEstimator:
    """Approximates drive time from great-circle distance.

    Road distance is taken as the haversine distance times `road_factor`, driven
    at `average_speed_kmh`. Never fails, so it is only used when selected
    explicitly.
    """

    name = "estimate"

    def __init__(self, average_speed_kmh: float | None = None, road_factor: float | None = None) -> None:
        self.average_speed_kmh = average_speed_kmh or settings.estimate_average_speed_kmh
        self.road_factor = road_factor or settings.estimate_road_factor

    def travel_time(
        self,
        origin: Coordinates,
        destination: Coordinates,
        *,
        traffic_model: Optional[str] = None,
    ) -> TravelTime:
        distance_km = haversine_km(origin.lat, origin.lng, destination.lat, destination.lng) * self.road_factor
        minutes = (distance_km / self.average_speed_kmh) * 60.0
        distance = distance_km * 1000.0
        return TravelTime(
            minutes=minutes,
            distance_meters=distance,
            distance_text=format_distance(distance),
            duration_text=f"{format_duration(minutes)} (estimated)",
            provider=self.name,
        )
