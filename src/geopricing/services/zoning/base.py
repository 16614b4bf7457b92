"""Base classes for zone matching policies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...models.domain import Adjustment, Schedule, ServiceRule


@dataclass(frozen=True, slots=True)
class ZoneMatch:
    """The zone or postal rule a location was assigned to."""

    id: str
    name: str
    adjustment: Adjustment
    source: str
    description: str = ""
    available_services: Optional[tuple[str, ...]] = None
    min_travel_minutes: Optional[float] = None
    max_travel_minutes: Optional[float] = None

    def offers(self, service_type: str, rule: Optional[ServiceRule] = None) -> bool:
        """A service is offered unless the zone's list or the service's own list excludes it."""
        if self.available_services is not None and service_type not in self.available_services:
            return False
        if rule is not None and rule.zone_ids is not None and self.id not in rule.zone_ids:
            return False
        return True


class MatchResult:
    """Outcome of matching: a zone, or None for out of service area."""

    def __init__(
        self,
        match: ZoneMatch | None,
        warnings: list[str] | None = None,
        metadata: dict | None = None,
    ):
        self.match = match
        self.warnings = warnings or []
        self.metadata = metadata or {}

    @property
    def in_service_area(self) -> bool:
        return self.match is not None

    @property
    def malformed(self) -> bool:
        return bool(self.warnings)


class MatchingPolicy(ABC):
    """Contract for the zone-matching policies."""

    @abstractmethod
    def match(
        self,
        schedule: Schedule,
        *,
        travel_minutes: float | None = None,
        postal_code: str | None = None,
    ) -> MatchResult:
        raise NotImplementedError
