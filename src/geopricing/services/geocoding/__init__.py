"""Address geocoders."""

from ...config import settings
from .google import GoogleGeocoder
from .models import GeocodeResult, Geocoder
from .nominatim import NominatimGeocoder


def get_geocoder(name: str | None = None) -> Geocoder:
    match name or settings.geocoder_provider:
        case "nominatim":
            return NominatimGeocoder()
        case "google":
            return GoogleGeocoder()
        case other:
            raise ValueError(f"Unknown geocoder '{other}'.")


__all__ = ["GeocodeResult", "Geocoder", "GoogleGeocoder", "NominatimGeocoder", "get_geocoder"]
