from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from src.geopricing.errors import GeocodeFailure, RoutingFailure
from src.geopricing.models.domain import CalculationRecord, Coordinates
from src.geopricing.services.cache import ResultCache
from src.geopricing.services.config_store import ConfigStore
from src.geopricing.services.geocoding.models import GeocodeResult
from src.geopricing.services.geopricing import GeopricingOrchestrator
from src.geopricing.services.routing.models import TravelTime

ORIGIN = {"lat": 43.6532, "lng": -79.3832}
CUSTOMER = {"lat": 43.7001, "lng": -79.4163}


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGeocoder:
    name = "fake"

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.reverse_calls: list[Coordinates] = []
        self.coordinates = Coordinates(**CUSTOMER)
        self.postal_code: Optional[str] = "M4C 1A1"
        self.fail = False

    def resolve(self, address: str) -> GeocodeResult:
        self.calls.append(address)
        if self.fail:
            raise GeocodeFailure(f"No results for address '{address}'.")
        return GeocodeResult(
            coordinates=self.coordinates,
            formatted_address=f"{address.strip()}, Toronto, ON, Canada",
            postal_code=self.postal_code,
            city="Toronto",
            region="Ontario",
            country="CA",
        )

    def reverse(self, coordinates: Coordinates) -> GeocodeResult:
        self.reverse_calls.append(coordinates)
        if self.fail:
            raise GeocodeFailure("No address found.")
        return GeocodeResult(coordinates=coordinates, formatted_address="Reverse result", postal_code=self.postal_code)


class FakeProvider:
    name = "fake"

    def __init__(self, minutes: float = 25.0) -> None:
        self.minutes = minutes
        self.calls = 0
        self.fail = False

    def travel_time(self, origin, destination, *, traffic_model=None) -> TravelTime:
        self.calls += 1
        if self.fail:
            raise RoutingFailure("No route found: ZERO_RESULTS")
        return TravelTime(
            minutes=self.minutes,
            distance_meters=self.minutes * 800.0,
            distance_text=f"{self.minutes * 0.8:.1f} km",
            duration_text=f"{round(self.minutes)} mins",
            provider=self.name,
        )


class MemoryCalculationStore:
    def __init__(self) -> None:
        self.records: dict[str, dict] = {}

    def save(self, record: CalculationRecord) -> None:
        self.records[record.calculation_id] = record.to_dict()

    def load(self, calculation_id: str) -> dict:
        return self.records[calculation_id]

    def mark_converted(self, calculation_id: str, converted_at: Optional[datetime] = None) -> dict:
        record = self.load(calculation_id)
        if record.get("converted_at") is None:
            record["converted_at"] = (converted_at or datetime.now(timezone.utc)).isoformat()
        return record


def zone_config_payload(**overrides) -> dict:
    payload = {
        "base_rate_per_area_unit": "25",
        "currency": "CAD",
        "minimum_charge": "50",
        "origin": ORIGIN,
        "schedule": {
            "kind": "zones",
            "zones": [
                {"id": "near", "name": "Near", "min_travel_minutes": 0, "max_travel_minutes": 10},
                {
                    "id": "mid",
                    "name": "Mid",
                    "min_travel_minutes": 10,
                    "max_travel_minutes": 60,
                    "adjustment": {"type": "percentage", "value": "15"},
                },
            ],
        },
        "service_rules": [
            {"service_type": "window", "zone_ids": ["near"]},
            {"service_type": "gutter", "additional_fee_percentage": "10"},
        ],
    }
    payload.update(overrides)
    return payload


def postal_config_payload(**overrides) -> dict:
    payload = {
        "base_rate_per_area_unit": "25",
        "currency": "CAD",
        "minimum_charge": "50",
        "schedule": {
            "kind": "postal",
            "exact_rules": [{"code": "M5V 3A8", "adjustment": {"type": "percentage", "value": "5"}}],
            "region_rules": [
                {
                    "id": "downtown",
                    "name": "Downtown",
                    "pattern": "^M5",
                    "priority": 100,
                    "adjustment": {"type": "percentage", "value": "10"},
                },
            ],
            "default_rule": {"adjustment": {"type": "fixed", "value": "5"}},
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResultCache:
    return ResultCache(900, clock=clock)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def calculation_store() -> MemoryCalculationStore:
    return MemoryCalculationStore()


@pytest.fixture
def config_store() -> ConfigStore:
    store = ConfigStore(reject_malformed_zones=False)
    store.create_config("biz-zones", zone_config_payload())
    store.create_config("biz-postal", postal_config_payload())
    return store


@pytest.fixture
def orchestrator(config_store, geocoder, provider, cache, calculation_store) -> GeopricingOrchestrator:
    return GeopricingOrchestrator(
        config_store=config_store,
        geocoder=geocoder,
        provider=provider,
        cache=cache,
        calculation_store=calculation_store,
        serve_stale_on_failure=False,
        max_parallel=4,
    )
