"""Geocoder backed by a Nominatim (OpenStreetMap) search service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import settings
from ...errors import GeocodeFailure
from ...models.domain import Coordinates
from .models import GeocodeResult

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    name = "nominatim"

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        country_codes: tuple[str, ...] | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or settings.nominatim_base_url).rstrip("/")
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.country_codes = country_codes if country_codes is not None else settings.geocoder_country_codes
        self.timeout = timeout if timeout is not None else settings.geocoding_timeout_seconds
        self._client = client

    def resolve(self, address: str) -> GeocodeResult:
        if not address or not address.strip():
            raise GeocodeFailure("Address is empty.")
        params = {"q": address.strip(), "format": "jsonv2", "addressdetails": 1, "limit": 1}
        if self.country_codes:
            params["countrycodes"] = ",".join(self.country_codes)
        data = self._get("/search", params)
        if not isinstance(data, list) or not data:
            raise GeocodeFailure(f"No results for address '{address}'. Try adding a street number, city or postal code.")
        return self._to_result(data[0])

    def reverse(self, coordinates: Coordinates) -> GeocodeResult:
        params = {"lat": coordinates.lat, "lon": coordinates.lng, "format": "jsonv2", "addressdetails": 1}
        data = self._get("/reverse", params)
        if not isinstance(data, dict) or "error" in data:
            raise GeocodeFailure(f"No address found near {coordinates.lat},{coordinates.lng}.")
        return self._to_result(data)

    def _get(self, path: str, params: dict) -> Any:
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"User-Agent": self.user_agent},
            )
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise GeocodeFailure(f"Geocoding timed out after {self.timeout:.1f}s.") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Nominatim request to {path} failed: {e}")
            raise GeocodeFailure(f"Geocoding service error: {e}") from e
        finally:
            if self._client is None:
                client.close()

    @staticmethod
    def _to_result(item: dict) -> GeocodeResult:
        try:
            coordinates = Coordinates(lat=float(item["lat"]), lng=float(item["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeFailure(f"Geocoding result missing coordinates: {e}") from e
        details = item.get("address") or {}
        return GeocodeResult(
            coordinates=coordinates,
            formatted_address=item.get("display_name", ""),
            postal_code=details.get("postcode"),
            city=details.get("city") or details.get("town") or details.get("village"),
            region=details.get("state"),
            country=(details.get("country_code") or "").upper() or None,
        )
