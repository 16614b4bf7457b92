"""Select the matching policy from the shape of the pricing configuration."""

from __future__ import annotations

from ...models.domain import PostalRuleSet, Schedule, ZoneSchedule
from .base import MatchingPolicy, MatchResult
from .postal import PostalCodeMatching
from .travel_time import TravelTimeMatching


def get_policy(schedule: Schedule) -> MatchingPolicy:
    match schedule:
        case ZoneSchedule():
            return TravelTimeMatching()
        case PostalRuleSet():
            return PostalCodeMatching()
        case _:
            raise TypeError(f"Unknown schedule type '{type(schedule).__name__}'.")


def match_location(
    schedule: Schedule,
    *,
    travel_minutes: float | None = None,
    postal_code: str | None = None,
) -> MatchResult:
    policy = get_policy(schedule)
    return policy.match(schedule, travel_minutes=travel_minutes, postal_code=postal_code)
