import pytest

from conftest import CUSTOMER, postal_config_payload, zone_config_payload
from src.geopricing.errors import PersistenceFailure
from src.geopricing.schemas.pricing import AvailabilityRequest, CalculateRequest
from src.geopricing.services.geopricing import GeopricingOrchestrator


def _request(business_id: str = "biz-zones", **overrides) -> CalculateRequest:
    values = {"business_id": business_id, "coordinates": CUSTOMER, "property_size_area_units": 5000}
    values.update(overrides)
    return CalculateRequest(**values)


def test_prices_customer_inside_a_zone(orchestrator, provider, geocoder, calculation_store) -> None:
    response = orchestrator.calculate(_request())

    assert response.success
    assert response.in_service_area
    assert response.matched_zone_or_rule.id == "mid"
    assert response.matched_zone_or_rule.adjustment_type == "percentage"
    assert response.matched_zone_or_rule.adjustment_value == 15.0
    assert response.travel_time.minutes == 25.0
    assert response.travel_time.from_cache is False
    [service] = response.services
    assert service.type == "base"
    assert service.adjusted_rate == 28.75
    assert service.total_price == 143.75
    assert response.total_price == 143.75
    assert response.currency == "CAD"
    assert geocoder.calls == []
    assert provider.calls == 1
    assert list(calculation_store.records) == [response.calculation_id]
    assert response.record["matched_id"] == "mid"
    assert response.record["total_price"] == "143.75"


def test_drive_past_last_zone_is_out_of_service(orchestrator, provider) -> None:
    provider.minutes = 65

    response = orchestrator.calculate(_request())

    assert response.success
    assert not response.in_service_area
    assert response.matched_zone_or_rule is None
    assert response.services == []
    assert response.total_price is None
    assert response.travel_time.minutes == 65.0


def test_identical_requests_within_ttl_call_provider_once(orchestrator, provider) -> None:
    first = orchestrator.calculate(_request())
    second = orchestrator.calculate(_request())

    assert provider.calls == 1
    assert second.travel_time.from_cache
    assert first.travel_time.minutes == second.travel_time.minutes
    assert first.travel_time.distance_meters == second.travel_time.distance_meters


def test_near_duplicate_coordinates_share_the_cache(orchestrator, provider) -> None:
    orchestrator.calculate(_request(coordinates={"lat": 43.700112, "lng": -79.416321}))
    orchestrator.calculate(_request(coordinates={"lat": 43.700098, "lng": -79.416349}))

    assert provider.calls == 1


def test_request_after_ttl_calls_provider_again(orchestrator, provider, clock) -> None:
    orchestrator.calculate(_request())
    clock.advance(901)

    response = orchestrator.calculate(_request())

    assert provider.calls == 2
    assert not response.travel_time.from_cache


def test_use_cache_false_bypasses_lookup(orchestrator, provider) -> None:
    orchestrator.calculate(_request())
    orchestrator.calculate(_request(options={"use_cache": False}))

    assert provider.calls == 2


def test_address_is_geocoded_once(orchestrator, geocoder, provider) -> None:
    first = orchestrator.calculate(_request(coordinates=None, address="12 Danforth Ave"))
    second = orchestrator.calculate(_request(coordinates=None, address="  12 danforth   ave"))

    assert geocoder.calls == ["12 Danforth Ave"]
    assert provider.calls == 1
    assert first.resolved_address == "12 Danforth Ave, Toronto, ON, Canada"
    assert second.resolved_coordinates.lat == CUSTOMER["lat"]
    assert first.postal_code == "M4C1A1"


def test_routing_failure_is_a_typed_retryable_error(orchestrator, provider, calculation_store) -> None:
    provider.fail = True

    response = orchestrator.calculate(_request())

    assert not response.success
    assert response.errors.code == "ROUTING_FAILED"
    assert response.errors.retryable
    assert calculation_store.records == {}


def test_routing_failure_after_ttl_is_not_served_stale_by_default(orchestrator, provider, clock) -> None:
    orchestrator.calculate(_request())
    clock.advance(901)
    provider.fail = True

    response = orchestrator.calculate(_request())

    assert response.errors.code == "ROUTING_FAILED"


def test_stale_travel_time_served_when_enabled(config_store, geocoder, provider, cache, clock) -> None:
    orchestrator = GeopricingOrchestrator(config_store, geocoder, provider, cache, serve_stale_on_failure=True)
    orchestrator.calculate(_request())
    clock.advance(901)
    provider.fail = True

    response = orchestrator.calculate(_request())

    assert response.success
    assert response.travel_time.from_cache
    assert "expired travel time" in response.warnings[0]


def test_geocode_failure(orchestrator, geocoder) -> None:
    geocoder.fail = True

    response = orchestrator.calculate(_request(coordinates=None, address="???"))

    assert not response.success
    assert response.errors.code == "GEOCODE_FAILED"
    assert not response.errors.retryable


def test_missing_config_is_distinct_from_out_of_service(orchestrator) -> None:
    response = orchestrator.calculate(_request("unknown-business"))

    assert not response.success
    assert response.errors.code == "CONFIGURATION_MISSING"


@pytest.mark.parametrize("code", ["M5V 3A8", "M5V3A8", "m5v3a8"])
def test_postal_spellings_price_identically(orchestrator, provider, code: str) -> None:
    response = orchestrator.calculate(_request("biz-postal", coordinates=None, postal_code=code))

    assert response.matched_zone_or_rule.id == "M5V3A8"
    assert response.matched_zone_or_rule.source == "exact"
    assert response.postal_code == "M5V3A8"
    assert response.total_price == 131.25
    assert response.travel_time is None
    assert provider.calls == 0


def test_postal_code_extracted_from_address(orchestrator, geocoder) -> None:
    response = orchestrator.calculate(
        _request("biz-postal", coordinates=None, address="55 Blue Jays Way, Toronto M5V 3A8")
    )

    assert response.matched_zone_or_rule.id == "M5V3A8"
    assert geocoder.calls == []


def test_postal_code_from_geocoder_when_address_has_none(orchestrator, geocoder) -> None:
    response = orchestrator.calculate(_request("biz-postal", coordinates=None, address="12 Danforth Ave"))

    assert geocoder.calls == ["12 Danforth Ave"]
    assert response.postal_code == "M4C1A1"
    assert response.matched_zone_or_rule.id == "default"
    # fixed +5 on a 25 rate
    assert response.services[0].adjusted_rate == 30.0


def test_postal_code_from_reverse_geocoding_coordinates(orchestrator, geocoder) -> None:
    response = orchestrator.calculate(_request("biz-postal"))

    assert len(geocoder.reverse_calls) == 1
    assert response.postal_code == "M4C1A1"


def test_postal_rule_without_any_code_is_geocode_failure(orchestrator, geocoder) -> None:
    geocoder.postal_code = None

    response = orchestrator.calculate(_request("biz-postal", coordinates=None, address="12 Danforth Ave"))

    assert response.errors.code == "GEOCODE_FAILED"


def test_service_unavailable_in_matched_zone(orchestrator) -> None:
    response = orchestrator.calculate(
        _request(services=[{"type": "window", "area": 2000}, {"type": "gutter", "area": 2000}])
    )

    window, gutter = response.services
    assert not window.available
    assert window.total_price == 0.0
    assert gutter.available
    # 25 * 1.15 * 1.10 = 31.625 per 1,000
    assert gutter.adjusted_rate == 31.63
    assert gutter.total_price == 63.25
    assert response.total_price == 63.25


def test_rate_table_included_on_request(orchestrator) -> None:
    response = orchestrator.calculate(_request(options={"include_rate_table": True}))

    assert [row.id for row in response.rate_table] == ["near", "mid"]
    assert [row.is_customer_zone for row in response.rate_table] == [False, True]


def test_persist_false_still_returns_record(orchestrator, calculation_store) -> None:
    response = orchestrator.calculate(_request(options={"persist": False}))

    assert calculation_store.records == {}
    assert response.record["calculation_id"] == response.calculation_id


def test_overlapping_zones_are_flagged_in_warnings(config_store, orchestrator) -> None:
    schedule = {
        "kind": "zones",
        "zones": [
            {"id": "a", "min_travel_minutes": 0, "max_travel_minutes": 30, "priority": 2},
            {"id": "b", "min_travel_minutes": 20, "max_travel_minutes": 40, "priority": 1},
        ],
    }
    config_store.create_config("biz-zones", zone_config_payload(schedule=schedule))

    response = orchestrator.calculate(_request())

    assert response.config_version == 2
    assert response.matched_zone_or_rule.id == "b"
    assert any("Malformed zone config" in warning for warning in response.warnings)


def test_persistence_failure_propagates(orchestrator, calculation_store, monkeypatch) -> None:
    def broken_save(record):
        raise PersistenceFailure("database unreachable")

    monkeypatch.setattr(calculation_store, "save", broken_save)

    with pytest.raises(PersistenceFailure):
        orchestrator.calculate(_request())


def test_check_availability_skips_pricing(orchestrator, calculation_store) -> None:
    response = orchestrator.check_availability(AvailabilityRequest(business_id="biz-zones", coordinates=CUSTOMER))

    assert response.success
    assert response.in_service_area
    assert response.matched_zone_or_rule.id == "mid"
    assert not hasattr(response, "services")
    assert calculation_store.records == {}


def test_batch_keeps_input_order_and_isolates_failures(orchestrator, calculation_store, monkeypatch) -> None:
    requests = [
        _request(),
        _request("unknown-business"),
        _request("biz-postal", coordinates=None, postal_code="V6B 1A1"),
    ]

    results = orchestrator.calculate_batch(requests)

    assert [r.business_id for r in results] == ["biz-zones", "unknown-business", "biz-postal"]
    assert [r.success for r in results] == [True, False, True]
    assert results[2].matched_zone_or_rule.id == "default"


def test_batch_converts_infrastructure_faults_per_item(orchestrator, calculation_store, monkeypatch) -> None:
    def broken_save(record):
        raise PersistenceFailure("database unreachable")

    monkeypatch.setattr(calculation_store, "save", broken_save)

    [result] = orchestrator.calculate_batch([_request()])

    assert not result.success
    assert result.errors.code == "PERSISTENCE_FAILED"


def test_house_number_is_not_taken_for_the_zip(orchestrator, config_store, geocoder) -> None:
    schedule = {
        "kind": "postal",
        "exact_rules": [{"code": "78701", "adjustment": {"type": "percentage", "value": "20"}}],
        "default_rule": {"adjustment": {"type": "fixed", "value": "5"}},
    }
    config_store.create_config("biz-postal", postal_config_payload(schedule=schedule))

    response = orchestrator.calculate(
        _request("biz-postal", coordinates=None, address="12345 Congress Ave, Austin, TX 78701")
    )

    assert response.postal_code == "78701"
    assert response.matched_zone_or_rule.id == "78701"
    assert response.matched_zone_or_rule.source == "exact"
    assert geocoder.calls == []


def test_response_explains_the_matched_zone(orchestrator) -> None:
    response = orchestrator.calculate(_request())

    assert "25 minutes" in response.explanation
    assert "15%" in response.explanation
    assert response.no_service_message is None
    assert response.contact_sales_link is None


def test_out_of_service_returns_configured_message(orchestrator, config_store, provider) -> None:
    config_store.create_config(
        "biz-zones",
        zone_config_payload(
            no_service_message="We don't reach that far yet.",
            contact_sales_link="https://example.com/sales",
        ),
    )
    provider.minutes = 65

    response = orchestrator.calculate(_request())
    availability = orchestrator.check_availability(AvailabilityRequest(business_id="biz-zones", coordinates=CUSTOMER))

    assert not response.in_service_area
    assert response.explanation is None
    assert response.no_service_message == "We don't reach that far yet."
    assert response.contact_sales_link == "https://example.com/sales"
    assert availability.no_service_message == "We don't reach that far yet."


def test_out_of_service_message_has_a_default(orchestrator, provider) -> None:
    provider.minutes = 65

    response = orchestrator.calculate(_request())

    assert response.no_service_message == "Sorry, we do not currently service this location."
    assert response.contact_sales_link is None
