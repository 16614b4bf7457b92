"""Geocoder backed by the Google Geocoding API."""

from __future__ import annotations

from typing import Any

import httpx

from ...config import settings
from ...errors import GeocodeFailure
from ...models.domain import Coordinates
from .models import GeocodeResult

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GoogleGeocoder:
    name = "google"

    def __init__(
        self,
        api_key: str | None = None,
        region: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
        base_url: str = GEOCODE_URL,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.region = region or (settings.geocoder_country_codes[0] if settings.geocoder_country_codes else None)
        self.timeout = timeout if timeout is not None else settings.geocoding_timeout_seconds
        self.base_url = base_url
        self._client = client

    def resolve(self, address: str) -> GeocodeResult:
        if not address or not address.strip():
            raise GeocodeFailure("Address is empty.")
        params = {"address": address.strip(), "key": self.api_key}
        if self.region:
            params["region"] = self.region
        return self._first_result(self._get(params), address)

    def reverse(self, coordinates: Coordinates) -> GeocodeResult:
        params = {"latlng": f"{coordinates.lat},{coordinates.lng}", "key": self.api_key}
        return self._first_result(self._get(params), f"{coordinates.lat},{coordinates.lng}")

    def _get(self, params: dict) -> Any:
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.get(self.base_url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise GeocodeFailure(f"Geocoding timed out after {self.timeout:.1f}s.") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodeFailure(f"Geocoding service error: {e}") from e
        finally:
            if self._client is None:
                client.close()

    @staticmethod
    def _first_result(data: dict, query: str) -> GeocodeResult:
        status = data.get("status")
        results = data.get("results") or []
        if status != "OK" or not results:
            raise GeocodeFailure(f"Geocoding failed for '{query}': {status}")

        result = results[0]
        components = result.get("address_components", [])

        def component(kind: str, short: bool = False) -> str | None:
            for item in components:
                if kind in item.get("types", []):
                    return item.get("short_name" if short else "long_name")
            return None

        location = result["geometry"]["location"]
        return GeocodeResult(
            coordinates=Coordinates(lat=float(location["lat"]), lng=float(location["lng"])),
            formatted_address=result.get("formatted_address", ""),
            postal_code=component("postal_code"),
            city=component("locality") or component("administrative_area_level_3"),
            region=component("administrative_area_level_1"),
            country=component("country", short=True),
        )
