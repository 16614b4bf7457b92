from decimal import Decimal

import pytest

from src.geopricing.models.domain import Adjustment, AdjustmentType, Zone, ZoneSchedule
from src.geopricing.services.zoning import match_location, validate_zones


def _zone(zone_id: str, low: float, high: float | None, pct: str = "0", priority: int = 0, services=None) -> Zone:
    return Zone(
        id=zone_id,
        min_travel_minutes=low,
        max_travel_minutes=high,
        adjustment=Adjustment(AdjustmentType.PERCENTAGE, Decimal(pct)),
        priority=priority,
        available_services=services,
    )


BOUNDED = ZoneSchedule(zones=(_zone("near", 0, 10), _zone("mid", 10, 60, "15")))
OPEN_ENDED = ZoneSchedule(zones=BOUNDED.zones + (_zone("far", 60, None, "30"),))


@pytest.mark.parametrize(
    "minutes, expected",
    [(0, "near"), (9.99, "near"), (10, "mid"), (42.5, "mid"), (59.999, "mid")],
)
def test_zones_are_half_open(minutes: float, expected: str) -> None:
    result = match_location(BOUNDED, travel_minutes=minutes)

    assert result.match is not None
    assert result.match.id == expected
    assert result.warnings == []


def test_drive_beyond_last_bounded_zone_is_out_of_service() -> None:
    result = match_location(BOUNDED, travel_minutes=65)

    assert result.match is None
    assert not result.in_service_area
    assert result.metadata["reason"] == "beyond_zones"
    assert result.warnings == []


def test_upper_bound_of_last_zone_is_excluded() -> None:
    assert match_location(BOUNDED, travel_minutes=60).match is None


def test_unbounded_zone_covers_long_drives() -> None:
    result = match_location(OPEN_ENDED, travel_minutes=600)

    assert result.match.id == "far"
    assert result.match.max_travel_minutes is None


def test_contiguous_zones_match_exactly_once_across_the_range() -> None:
    for step in range(0, 400):
        minutes = step * 0.5
        result = match_location(OPEN_ENDED, travel_minutes=minutes)
        assert result.match is not None, minutes
        assert not result.malformed, minutes


def test_unsorted_zones_are_matched_in_ascending_order() -> None:
    schedule = ZoneSchedule(zones=tuple(reversed(OPEN_ENDED.zones)))

    assert match_location(schedule, travel_minutes=5).match.id == "near"
    assert match_location(schedule, travel_minutes=75).match.id == "far"


def test_overlapping_zones_apply_lowest_priority_value_and_warn() -> None:
    schedule = ZoneSchedule(zones=(_zone("a", 0, 30, priority=2), _zone("b", 20, 40, "10", priority=1)))

    result = match_location(schedule, travel_minutes=25)

    assert result.match.id == "b"
    assert result.malformed
    assert "Malformed zone config" in result.warnings[0]


def test_overlap_with_equal_priorities_keeps_the_lower_band() -> None:
    schedule = ZoneSchedule(zones=(_zone("a", 0, 30), _zone("b", 20, 40)))

    assert match_location(schedule, travel_minutes=25).match.id == "a"


def test_gap_between_zones_is_out_of_service_and_flagged() -> None:
    schedule = ZoneSchedule(zones=(_zone("a", 0, 10), _zone("b", 20, 30)))

    result = match_location(schedule, travel_minutes=15)

    assert result.match is None
    assert result.metadata["reason"] == "gap"
    assert result.malformed
    assert len(result.warnings) == 1


def test_drive_shorter_than_first_zone_is_out_of_service() -> None:
    schedule = ZoneSchedule(zones=(_zone("a", 5, 10),))

    result = match_location(schedule, travel_minutes=2)

    assert result.match is None
    assert result.metadata["reason"] == "below_zones"


def test_no_zones_is_out_of_service() -> None:
    result = match_location(ZoneSchedule(zones=()), travel_minutes=5)

    assert result.match is None
    assert result.metadata["reason"] == "no_zones"


def test_negative_travel_time_is_rejected() -> None:
    with pytest.raises(ValueError):
        match_location(BOUNDED, travel_minutes=-1)


def test_validate_zones_accepts_contiguous_zones() -> None:
    assert validate_zones(OPEN_ENDED.zones) == []


def test_validate_zones_reports_overlap_gap_and_misplaced_unbounded_zone() -> None:
    overlapping = validate_zones((_zone("a", 0, None), _zone("b", 10, 20)))
    gapped = validate_zones((_zone("a", 0, 10), _zone("b", 15, 20)))
    unordered = validate_zones((_zone("b", 10, 20), _zone("a", 0, 10)))

    assert any("not the last zone" in problem for problem in overlapping)
    assert any("overlap" in problem for problem in overlapping)
    assert any("gap between zones 'a' and 'b'" in problem for problem in gapped)
    assert any("out of order" in problem for problem in unordered)


def test_matched_zone_service_availability() -> None:
    schedule = ZoneSchedule(zones=(_zone("near", 0, 10, services=("base",)),))

    match = match_location(schedule, travel_minutes=3).match

    assert match.offers("base")
    assert not match.offers("window")
