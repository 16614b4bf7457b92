"""Geopricing calculation endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...errors import GeopricingError
from ...persistence.calculations import CalculationStore
from ...schemas.pricing import (
    AvailabilityRequest,
    AvailabilityResponse,
    BatchCalculateRequest,
    BatchCalculateResponse,
    CalculateRequest,
    CalculateResponse,
)
from ...services.geopricing import GeopricingOrchestrator
from ..deps import ensure_business_access, get_business_context, get_orchestrator, get_store

router = APIRouter(prefix="/geopricing", tags=["geopricing"])

# Typed failures carry their HTTP status through the response.
_ERROR_STATUS = {cls.code: cls.status_code for cls in GeopricingError.__subclasses__()}


def _status_for(result: AvailabilityResponse) -> int:
    if result.success or result.errors is None:
        return status.HTTP_200_OK
    return _ERROR_STATUS.get(result.errors.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/calculate", response_model=CalculateResponse)
def calculate_price(
    payload: CalculateRequest,
    response: Response,
    orchestrator: GeopricingOrchestrator = Depends(get_orchestrator),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> CalculateResponse:
    ensure_business_access(context_business_id, payload.business_id)
    result = orchestrator.calculate(payload)
    response.status_code = _status_for(result)
    return result


@router.post("/calculate/batch", response_model=BatchCalculateResponse)
def calculate_batch(
    payload: BatchCalculateRequest,
    orchestrator: GeopricingOrchestrator = Depends(get_orchestrator),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> BatchCalculateResponse:
    for item in payload.requests:
        ensure_business_access(context_business_id, item.business_id)
    return BatchCalculateResponse(results=orchestrator.calculate_batch(payload.requests))


@router.post("/availability", response_model=AvailabilityResponse)
def check_availability(
    payload: AvailabilityRequest,
    response: Response,
    orchestrator: GeopricingOrchestrator = Depends(get_orchestrator),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> AvailabilityResponse:
    ensure_business_access(context_business_id, payload.business_id)
    result = orchestrator.check_availability(payload)
    response.status_code = _status_for(result)
    return result


@router.post("/calculations/{calculation_id}/converted", status_code=status.HTTP_200_OK)
def mark_converted(
    calculation_id: str,
    store: Optional[CalculationStore] = Depends(get_store),
    context_business_id: Optional[str] = Depends(get_business_context),
) -> dict:
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No calculation store is configured.",
        )
    try:
        existing = store.load(calculation_id)
        ensure_business_access(context_business_id, existing["business_id"])
        record = store.mark_converted(calculation_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Calculation '{calculation_id}' not found.",
        ) from exc
    return {"calculation_id": calculation_id, "converted_at": record.get("converted_at")}
