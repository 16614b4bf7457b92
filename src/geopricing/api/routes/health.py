"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...config import settings
from ...services.cache import ResultCache
from ..deps import get_result_cache

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_osrm_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.osrm_client import check_health as osrm_health_check
    return osrm_health_check


@router.get("/health/routing", status_code=status.HTTP_200_OK)
def health_routing() -> dict:
    """Check the configured travel-time provider."""
    provider = settings.travel_time_provider
    if provider == "estimate":
        return {"service": provider, "healthy": True}
    if provider == "google":
        return {"service": provider, "healthy": bool(settings.google_maps_api_key)}
    try:
        osrm_health_check = _get_osrm_health_check()
        return {"service": provider, "healthy": osrm_health_check()}
    except Exception as e:
        return {"service": provider, "healthy": False, "error": str(e)}


@router.get("/health/cache", status_code=status.HTTP_200_OK)
def health_cache(cache: ResultCache = Depends(get_result_cache)) -> dict:
    """Result cache size and hit/miss counters."""
    return {"service": "cache", "healthy": True, **cache.stats()}
