"""Request orchestration: resolve location, travel time, zone match, pricing."""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from ...config import settings
from ...errors import (
    ConfigurationMissing,
    GeocodeFailure,
    GeopricingError,
    InvalidRequest,
    MalformedConfig,
    RoutingFailure,
)
from ...models.domain import CalculationRecord, Coordinates, PostalRuleSet, PricingConfig, ZoneSchedule
from ...persistence.calculations import CalculationStore
from ...schemas.common import CoordinatesModel
from ...schemas.pricing import (
    AvailabilityRequest,
    AvailabilityResponse,
    CalculateRequest,
    CalculateResponse,
    ErrorModel,
    LocationRequest,
    MatchedZoneModel,
    RateTableRowModel,
    ServicePriceModel,
    TravelTimeModel,
)
from ..cache import MISS, ResultCache
from ..config_store import ConfigStore
from ..geocoding.models import GeocodeResult, Geocoder
from ..pricing.calculator import ServiceLine, calculate_prices
from ..pricing.rate_table import build_rate_table, explain_match
from ..routing.models import TravelTime, TravelTimeProvider
from ..zoning.base import MatchResult
from ..zoning.dispatcher import match_location
from ..zoning.postal import extract_postal_code, normalize_postal_code

logger = logging.getLogger(__name__)

# Failures reported to the caller as a typed response instead of raised.
REQUEST_FAILURES = (GeocodeFailure, RoutingFailure, ConfigurationMissing, InvalidRequest, MalformedConfig)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Evaluation:
    """Everything learned about one location before pricing."""

    config: PricingConfig
    match: MatchResult
    coordinates: Optional[Coordinates] = None
    postal_code: Optional[str] = None
    resolved_address: Optional[str] = None
    travel: Optional[TravelTime] = None
    travel_from_cache: bool = False
    warnings: list[str] = field(default_factory=list)


class GeopricingOrchestrator:
    """Composes config lookup, geocoding, routing, matching and pricing.

    Each call is independent. Typed request failures come back as
    `success=False` responses; only infrastructure faults such as
    PersistenceFailure propagate.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        geocoder: Geocoder,
        provider: TravelTimeProvider,
        cache: ResultCache,
        *,
        calculation_store: Optional[CalculationStore] = None,
        clock: Callable[[], datetime] = _utcnow,
        serve_stale_on_failure: Optional[bool] = None,
        max_parallel: Optional[int] = None,
    ) -> None:
        self.config_store = config_store
        self.geocoder = geocoder
        self.provider = provider
        self.cache = cache
        self.calculation_store = calculation_store
        self._clock = clock
        self.serve_stale_on_failure = (
            settings.serve_stale_on_failure if serve_stale_on_failure is None else serve_stale_on_failure
        )
        self.max_parallel = max_parallel or settings.batch_max_parallel

    # Public operations

    def calculate(self, request: CalculateRequest) -> CalculateResponse:
        started = time.perf_counter()
        try:
            evaluation = self._evaluate(request)
        except REQUEST_FAILURES as e:
            logger.warning(f"Calculation for business {request.business_id} failed: {e.code} {e.message}")
            return CalculateResponse(
                success=False,
                business_id=request.business_id,
                errors=ErrorModel(code=e.code, message=e.message, retryable=e.retryable),
            )

        config = evaluation.config
        match = evaluation.match.match
        response = CalculateResponse(
            success=True,
            calculation_id=uuid.uuid4().hex,
            **self._location_fields(request, evaluation),
            currency=config.currency,
        )

        if match is not None:
            lines = [ServiceLine(s.type, area=s.area, custom_rate=s.custom_rate) for s in request.services]
            breakdown = calculate_prices(config, match, lines, request.property_size_area_units)
            response.services = [ServicePriceModel(**price.as_dict()) for price in breakdown.services]
            response.total_price = float(breakdown.rounded_total)

        if request.options.include_rate_table:
            rows = build_rate_table(config, request.property_size_area_units, match.id if match else None)
            response.rate_table = [
                RateTableRowModel(
                    id=row.id,
                    name=row.name,
                    adjustment_label=row.adjustment_label,
                    adjusted_rate=row.adjusted_rate,
                    total_price=row.total_price,
                    is_customer_zone=row.is_customer_zone,
                )
                for row in rows
            ]

        record = self._build_record(request, response, evaluation, started)
        response.record = record.to_dict()
        if request.options.persist and self.calculation_store is not None:
            self.calculation_store.save(record)

        logger.info(
            f"Calculation {record.calculation_id} for {request.business_id}: "
            f"zone={record.matched_id} total={record.total_price} {config.currency} "
            f"({record.processing_time_ms:.1f} ms)"
        )
        return response

    def check_availability(self, request: AvailabilityRequest) -> AvailabilityResponse:
        """Same location pipeline as `calculate`, without pricing or a record."""
        try:
            evaluation = self._evaluate(request)
        except REQUEST_FAILURES as e:
            return AvailabilityResponse(
                success=False,
                business_id=request.business_id,
                errors=ErrorModel(code=e.code, message=e.message, retryable=e.retryable),
            )
        return AvailabilityResponse(success=True, **self._location_fields(request, evaluation))

    def calculate_batch(self, requests: Sequence[CalculateRequest]) -> list[CalculateResponse]:
        """Run independent calculations in parallel; results keep input order."""
        if not requests:
            return []
        workers = min(self.max_parallel, len(requests))
        logger.info(f"Running batch of {len(requests)} calculations ({workers} workers)")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._calculate_isolated, requests))

    def _calculate_isolated(self, request: CalculateRequest) -> CalculateResponse:
        try:
            return self.calculate(request)
        except GeopricingError as e:
            # one failing item must not abort the rest of the batch
            logger.error(f"Batch item for {request.business_id} failed: {e.code} {e.message}")
            return CalculateResponse(
                success=False,
                business_id=request.business_id,
                errors=ErrorModel(code=e.code, message=e.message, retryable=e.retryable),
            )

    # Pipeline

    def _evaluate(self, request: LocationRequest) -> Evaluation:
        config = self.config_store.get_active_config(request.business_id, now=self._clock())
        use_cache = request.options.use_cache
        coordinates = request.coordinates.to_domain() if request.coordinates else None

        match config.schedule:
            case ZoneSchedule():
                return self._evaluate_zones(request, config, coordinates, use_cache)
            case PostalRuleSet():
                return self._evaluate_postal(request, config, coordinates, use_cache)
            case _:
                raise MalformedConfig(f"Unsupported schedule type for business '{config.business_id}'.")

    def _evaluate_zones(
        self,
        request: LocationRequest,
        config: PricingConfig,
        coordinates: Optional[Coordinates],
        use_cache: bool,
    ) -> Evaluation:
        if config.origin is None:
            raise MalformedConfig(f"Zone config v{config.version} for '{config.business_id}' has no origin.")

        geocoded: Optional[GeocodeResult] = None
        if coordinates is None:
            # postal-code-only requests are geocoded on the code itself
            geocoded = self._geocode(request.address or request.postal_code or "", use_cache)
            coordinates = geocoded.coordinates

        travel, from_cache, warnings = self._travel_time(
            config.origin, coordinates, request.options.traffic_model, use_cache
        )
        result = match_location(config.schedule, travel_minutes=travel.minutes)
        postal_code = request.postal_code or (geocoded.postal_code if geocoded else None)
        return Evaluation(
            config=config,
            match=result,
            coordinates=coordinates,
            postal_code=normalize_postal_code(postal_code) if postal_code else None,
            resolved_address=geocoded.formatted_address if geocoded else None,
            travel=travel,
            travel_from_cache=from_cache,
            warnings=warnings + result.warnings,
        )

    def _evaluate_postal(
        self,
        request: LocationRequest,
        config: PricingConfig,
        coordinates: Optional[Coordinates],
        use_cache: bool,
    ) -> Evaluation:
        geocoded: Optional[GeocodeResult] = None
        postal_code = request.postal_code
        if not postal_code and request.address:
            postal_code = extract_postal_code(request.address)
        if not postal_code and request.address:
            geocoded = self._geocode(request.address, use_cache)
            postal_code = geocoded.postal_code
            coordinates = coordinates or geocoded.coordinates
        if not postal_code and coordinates is not None:
            geocoded = self.geocoder.reverse(coordinates)
            postal_code = geocoded.postal_code
        if not postal_code:
            raise GeocodeFailure("Could not determine a postal code for this location; include it in the address.")

        code = normalize_postal_code(postal_code)
        key = self.cache.postal_key(config.business_id, config.version, code)
        result = self.cache.get(key) if use_cache else MISS
        if result is MISS:
            result = match_location(config.schedule, postal_code=code)
            self.cache.put(key, result)
        return Evaluation(
            config=config,
            match=result,
            coordinates=coordinates,
            postal_code=code,
            resolved_address=geocoded.formatted_address if geocoded else None,
            warnings=list(result.warnings),
        )

    def _geocode(self, address: str, use_cache: bool) -> GeocodeResult:
        if not address.strip():
            raise InvalidRequest("An address or coordinates are required.")
        key = self.cache.geocode_key(address)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not MISS:
                return cached
        result = self.geocoder.resolve(address)
        self.cache.put(key, result)
        return result

    def _travel_time(
        self,
        origin: Coordinates,
        destination: Coordinates,
        traffic_model: Optional[str],
        use_cache: bool,
    ) -> tuple[TravelTime, bool, list[str]]:
        key = self.cache.travel_time_key(origin, destination, traffic_model, self.provider.name)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not MISS:
                logger.debug(f"Travel time cache hit for {key}")
                return cached, True, []

        try:
            result = self.provider.travel_time(origin, destination, traffic_model=traffic_model)
        except RoutingFailure as e:
            if self.serve_stale_on_failure:
                stale = self.cache.get_stale(key)
                if stale is not MISS:
                    warning = f"Routing provider failed ({e.message}); served an expired travel time"
                    logger.warning(warning)
                    return stale, True, [warning]
            logger.warning(f"Routing via {self.provider.name} failed: {e.message}")
            raise

        self.cache.put(key, result)
        return result, False, []

    # Output

    def _location_fields(self, request: LocationRequest, evaluation: Evaluation) -> dict:
        match = evaluation.match.match
        travel = evaluation.travel
        config = evaluation.config
        return {
            "business_id": request.business_id,
            "in_service_area": match is not None,
            "config_version": evaluation.config.version,
            "matched_zone_or_rule": MatchedZoneModel(
                id=match.id,
                name=match.name,
                adjustment_type=match.adjustment.type.value,
                adjustment_value=float(match.adjustment.value),
                source=match.source,
                description=match.description,
            )
            if match
            else None,
            "travel_time": TravelTimeModel(
                minutes=round(travel.minutes, 2),
                distance_meters=round(travel.distance_meters, 1),
                distance_text=travel.distance_text,
                from_cache=evaluation.travel_from_cache,
                provider=travel.provider,
            )
            if travel
            else None,
            "postal_code": evaluation.postal_code,
            "resolved_address": evaluation.resolved_address,
            "resolved_coordinates": CoordinatesModel.from_domain(evaluation.coordinates)
            if evaluation.coordinates
            else None,
            "explanation": explain_match(
                match,
                config.currency,
                travel_minutes=travel.minutes if travel else None,
                postal_code=evaluation.postal_code,
            )
            if match
            else None,
            "no_service_message": None if match else config.no_service_message,
            "contact_sales_link": None if match else config.contact_sales_link,
            "warnings": evaluation.warnings,
        }

    def _build_record(
        self,
        request: CalculateRequest,
        response: CalculateResponse,
        evaluation: Evaluation,
        started: float,
    ) -> CalculationRecord:
        travel = evaluation.travel
        return CalculationRecord(
            calculation_id=response.calculation_id or uuid.uuid4().hex,
            business_id=request.business_id,
            config_version=evaluation.config.version,
            created_at=self._clock(),
            input_address=request.address,
            input_coordinates=request.coordinates.to_domain() if request.coordinates else None,
            resolved_coordinates=evaluation.coordinates,
            postal_code=evaluation.postal_code,
            travel_minutes=round(travel.minutes, 2) if travel else None,
            distance_meters=travel.distance_meters if travel else None,
            travel_from_cache=evaluation.travel_from_cache,
            matched_id=response.matched_zone_or_rule.id if response.matched_zone_or_rule else None,
            in_service_area=response.in_service_area,
            services=[service.model_dump() for service in response.services],
            total_price=f"{response.total_price:.2f}" if response.total_price is not None else None,
            currency=response.currency,
            processing_time_ms=(time.perf_counter() - started) * 1000.0,
        )
