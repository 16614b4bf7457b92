"""Pricing configuration management endpoints."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import ConfigurationMissing, ConfigVersionConflict, MalformedConfig
from ...schemas.configs import PricingConfigCreate, PricingConfigModel
from ...services.config_store import ConfigStore
from ..deps import ensure_business_access, get_business_context, get_config_store

router = APIRouter(prefix="/geopricing/configs", tags=["configs"])


@router.post("/{business_id}", response_model=PricingConfigModel, status_code=status.HTTP_201_CREATED)
def create_config(
    business_id: str,
    payload: PricingConfigCreate,
    store: ConfigStore = Depends(get_config_store),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> PricingConfigModel:
    ensure_business_access(context_business_id, business_id)
    try:
        config = store.create_config(business_id, payload)
    except ConfigVersionConflict as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except MalformedConfig as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"message": exc.message, "problems": exc.problems},
        ) from exc
    except Exception as exc:
        logging.exception(f"Unexpected error creating config for {business_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create pricing config: {exc}",
        ) from exc
    return PricingConfigModel.from_domain(config)


@router.get("/{business_id}", response_model=List[PricingConfigModel])
def list_configs(
    business_id: str,
    store: ConfigStore = Depends(get_config_store),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> List[PricingConfigModel]:
    ensure_business_access(context_business_id, business_id)
    return [PricingConfigModel.from_domain(config) for config in store.list_configs(business_id)]


@router.get("/{business_id}/active", response_model=PricingConfigModel)
def get_active_config(
    business_id: str,
    store: ConfigStore = Depends(get_config_store),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> PricingConfigModel:
    ensure_business_access(context_business_id, business_id)
    try:
        config = store.get_active_config(business_id)
    except ConfigurationMissing as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return PricingConfigModel.from_domain(config)
