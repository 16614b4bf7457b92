"""Travel-time band matching."""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import Schedule, Zone, ZoneSchedule
from .base import MatchingPolicy, MatchResult, ZoneMatch

logger = logging.getLogger(__name__)


def validate_zones(zones: Sequence[Zone]) -> list[str]:
    """Return the problems that make a zone list non-contiguous or ambiguous.

    An empty list means the zones are sorted, non-overlapping, gap-free, and
    only the last one is unbounded.
    """
    problems: list[str] = []
    for index, zone in enumerate(zones):
        if zone.min_travel_minutes < 0:
            problems.append(f"zone '{zone.id}' has a negative lower bound")
        if zone.max_travel_minutes is not None and zone.max_travel_minutes <= zone.min_travel_minutes:
            problems.append(f"zone '{zone.id}' has max_travel_minutes <= min_travel_minutes")
        if zone.max_travel_minutes is None and index != len(zones) - 1:
            problems.append(f"zone '{zone.id}' is unbounded but is not the last zone")
        if index and zones[index - 1].min_travel_minutes > zone.min_travel_minutes:
            problems.append(f"zone '{zone.id}' is out of order (zones must ascend by min_travel_minutes)")

    ordered = sorted(zones, key=lambda z: z.min_travel_minutes)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.max_travel_minutes is None or current.min_travel_minutes < previous.max_travel_minutes:
            problems.append(f"zones '{previous.id}' and '{current.id}' overlap")
        elif current.min_travel_minutes > previous.max_travel_minutes:
            problems.append(
                f"gap between zones '{previous.id}' and '{current.id}' "
                f"({previous.max_travel_minutes:g}-{current.min_travel_minutes:g} min)"
            )
    return problems


def _to_match(zone: Zone) -> ZoneMatch:
    return ZoneMatch(
        id=zone.id,
        name=zone.name or zone.id,
        adjustment=zone.adjustment,
        source="zone",
        description=zone.description,
        available_services=zone.available_services,
        min_travel_minutes=zone.min_travel_minutes,
        max_travel_minutes=zone.max_travel_minutes,
    )


class TravelTimeMatching(MatchingPolicy):
    """Assign a location to the band containing its drive time.

    Bands are half-open: a drive time equal to a zone's upper bound belongs to
    the next zone.
    """

    def match(
        self,
        schedule: Schedule,
        *,
        travel_minutes: float | None = None,
        postal_code: str | None = None,
    ) -> MatchResult:
        if not isinstance(schedule, ZoneSchedule):
            raise TypeError("TravelTimeMatching requires a ZoneSchedule.")
        if travel_minutes is None:
            raise ValueError("travel_minutes is required for travel-time matching.")
        if travel_minutes < 0:
            raise ValueError("travel_minutes must be non-negative.")

        zones = sorted(schedule.zones, key=lambda z: z.min_travel_minutes)
        metadata = {"policy": "travel_time", "travel_minutes": travel_minutes}
        if not zones:
            return MatchResult(None, metadata={**metadata, "reason": "no_zones"})

        candidates = [zone for zone in zones if zone.contains(travel_minutes)]
        if len(candidates) == 1:
            return MatchResult(_to_match(candidates[0]), metadata=metadata)

        if candidates:
            # min() keeps the first of equal priorities, i.e. the lowest band
            chosen = min(candidates, key=lambda z: z.priority)
            warning = (
                f"Malformed zone config: {travel_minutes:.2f} min matches zones "
                f"{[z.id for z in candidates]}; applied '{chosen.id}' (lowest priority value)"
            )
            logger.warning(warning)
            return MatchResult(_to_match(chosen), warnings=[warning], metadata=metadata)

        warnings: list[str] = []
        last = zones[-1]
        inside_span = zones[0].min_travel_minutes <= travel_minutes and (
            last.max_travel_minutes is None or travel_minutes < last.max_travel_minutes
        )
        if inside_span:
            warning = f"Malformed zone config: {travel_minutes:.2f} min falls in a gap between zones"
            logger.warning(warning)
            warnings.append(warning)
            reason = "gap"
        elif travel_minutes < zones[0].min_travel_minutes:
            reason = "below_zones"
        else:
            reason = "beyond_zones"
        return MatchResult(None, warnings=warnings, metadata={**metadata, "reason": reason})
