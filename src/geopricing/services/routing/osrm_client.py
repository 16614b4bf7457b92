"""HTTP client for the OSRM route service."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from ...config import settings
from ...errors import RoutingFailure
from ...models.domain import Coordinates
from .models import TravelTime, format_distance, format_duration

logger = logging.getLogger(__name__)


class OSRMClient:
    """Drive time from OSRM's /route endpoint. OSRM has no traffic models, so
    `traffic_model` is accepted and ignored."""

    name = "osrm"

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.routing_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.routing_backoff_seconds
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 3.0)))

    def travel_time(
        self,
        origin: Coordinates,
        destination: Coordinates,
        *,
        traffic_model: Optional[str] = None,
    ) -> TravelTime:
        # OSRM expects "lon,lat;lon,lat"
        coordinate_str = f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        params = {"overview": "false", "steps": "false"}

        data = self._get_with_retries(url, params)
        if data.get("code") != "Ok" or not data.get("routes"):
            message = data.get("message") or data.get("code") or "unknown error"
            raise RoutingFailure(f"OSRM found no route: {message}")

        route = data["routes"][0]
        minutes = float(route["duration"]) / 60.0
        distance = float(route["distance"])
        return TravelTime(
            minutes=minutes,
            distance_meters=distance,
            distance_text=format_distance(distance),
            duration_text=format_duration(minutes),
            provider=self.name,
        )

    def _get_with_retries(self, url: str, params: dict) -> dict:
        client = self._get_client()
        owns_client = client is not self._client
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    if response.status_code == 400:
                        # OSRM reports NoRoute / InvalidQuery with a 400 and a JSON body
                        return response.json()
                    if response.status_code == 429:
                        raise RoutingFailure("OSRM rate limit exceeded.")
                    response.raise_for_status()
                    return response.json()
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM route request timed out after {attempt} attempt(s): {e}")
                        raise RoutingFailure(f"OSRM request timed out after {self.timeout:.1f}s.") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except httpx.HTTPError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise RoutingFailure(f"Failed to reach OSRM service at {self.base_url}: {e}") from e
                    time.sleep(self.backoff_seconds * attempt)
                except ValueError as e:
                    raise RoutingFailure(f"OSRM returned an unreadable response: {e}") from e
        finally:
            if owns_client:
                client.close()


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM reachability with a minimal two-point route request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
