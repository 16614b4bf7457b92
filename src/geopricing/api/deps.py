"""Process-wide components and request dependencies for the routes."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status

from ..config import settings
from ..persistence.calculations import CalculationStore, get_calculation_store
from ..services.cache import ResultCache
from ..services.config_store import ConfigStore
from ..services.geocoding import get_geocoder
from ..services.geopricing import GeopricingOrchestrator
from ..services.routing import get_travel_time_provider

logger = logging.getLogger(__name__)


@lru_cache()
def get_config_store() -> ConfigStore:
    store = ConfigStore()
    if settings.pricing_config_file is not None:
        store.load_from_file(settings.pricing_config_file)
    return store


@lru_cache()
def get_result_cache() -> ResultCache:
    return ResultCache(
        settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
        coordinate_precision=settings.cache_coordinate_precision,
    )


@lru_cache()
def get_store() -> Optional[CalculationStore]:
    store = get_calculation_store()
    if store is None:
        logger.info("No calculation store configured; records are returned but not persisted")
    return store


@lru_cache()
def get_orchestrator() -> GeopricingOrchestrator:
    return GeopricingOrchestrator(
        config_store=get_config_store(),
        geocoder=get_geocoder(),
        provider=get_travel_time_provider(),
        cache=get_result_cache(),
        calculation_store=get_store(),
    )


def get_business_context(x_business_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Business id supplied by the upstream authentication layer, if any."""
    return x_business_id


def ensure_business_access(context_business_id: Optional[str], business_id: str) -> None:
    if context_business_id is not None and context_business_id != business_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized for business '{business_id}'.",
        )
