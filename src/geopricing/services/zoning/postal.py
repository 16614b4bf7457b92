"""Postal/ZIP code rule matching."""

from __future__ import annotations

import logging
import re
from typing import Optional

from ...models.domain import PostalRuleSet, RegionRule, Schedule
from .base import MatchingPolicy, MatchResult, ZoneMatch

US_ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
CA_POSTAL_PATTERN = re.compile(r"^[A-Z]\d[A-Z]\s?\d[A-Z]\d$", re.IGNORECASE)
US_ZIP_SEARCH = re.compile(r"\b\d{5}(?:-\d{4})?\b")
CA_POSTAL_SEARCH = re.compile(r"\b[A-Z]\d[A-Z]\s?\d[A-Z]\d\b", re.IGNORECASE)

logger = logging.getLogger(__name__)


def normalize_postal_code(code: str) -> str:
    """Uppercase and drop all whitespace, so 'm5v 3a8' == 'M5V3A8'."""
    return "".join(code.split()).upper()


def is_valid_postal_code(code: str, country: Optional[str] = None) -> bool:
    trimmed = code.strip()
    if country is None:
        return bool(US_ZIP_PATTERN.match(trimmed) or CA_POSTAL_PATTERN.match(trimmed))
    if country.upper() == "US":
        return bool(US_ZIP_PATTERN.match(trimmed))
    if country.upper() == "CA":
        return bool(CA_POSTAL_PATTERN.match(trimmed))
    return False


def extract_postal_code(address: str, country: Optional[str] = None) -> Optional[str]:
    """Pull the postal/ZIP code out of a free-form address.

    The code comes last in an address, so the last match wins; a five-digit
    house number in front of a ZIP is never taken for it.
    """
    searches = {"CA": (CA_POSTAL_SEARCH,), "US": (US_ZIP_SEARCH,)}.get(
        (country or "").upper(), (CA_POSTAL_SEARCH, US_ZIP_SEARCH)
    )
    for pattern in searches:
        found = pattern.findall(address)
        if found:
            return normalize_postal_code(found[-1])
    return None


def _region_matches(rule: RegionRule, code: str) -> bool:
    if rule.match_type == "prefix":
        return code.startswith(normalize_postal_code(rule.pattern))
    return re.search(rule.pattern, code, re.IGNORECASE) is not None


class PostalCodeMatching(MatchingPolicy):
    """Exact code rules win outright; then the highest-priority region pattern;
    then the default rule."""

    def match(
        self,
        schedule: Schedule,
        *,
        travel_minutes: float | None = None,
        postal_code: str | None = None,
    ) -> MatchResult:
        if not isinstance(schedule, PostalRuleSet):
            raise TypeError("PostalCodeMatching requires a PostalRuleSet.")
        if not postal_code:
            raise ValueError("postal_code is required for postal-code matching.")

        code = normalize_postal_code(postal_code)
        metadata = {"policy": "postal_code", "postal_code": code}

        for rule in schedule.exact_rules:
            if rule.is_active and normalize_postal_code(rule.code) == code:
                return MatchResult(
                    ZoneMatch(
                        id=normalize_postal_code(rule.code),
                        name=normalize_postal_code(rule.code),
                        adjustment=rule.adjustment,
                        source="exact",
                        description=rule.description,
                        available_services=rule.available_services,
                    ),
                    metadata=metadata,
                )

        warnings: list[str] = []
        # sorted() is stable, so equal priorities keep their configured order
        for rule in sorted(schedule.region_rules, key=lambda r: -r.priority):
            if not rule.is_active:
                continue
            try:
                matched = _region_matches(rule, code)
            except re.error as e:
                warning = f"Malformed region rule '{rule.id}': invalid pattern {rule.pattern!r} ({e})"
                logger.warning(warning)
                warnings.append(warning)
                continue
            if matched:
                return MatchResult(
                    ZoneMatch(
                        id=rule.id,
                        name=rule.name or rule.id,
                        adjustment=rule.adjustment,
                        source="region",
                        description=rule.description,
                        available_services=rule.available_services,
                    ),
                    warnings=warnings,
                    metadata=metadata,
                )

        if schedule.default_rule is not None:
            default = schedule.default_rule
            return MatchResult(
                ZoneMatch(
                    id="default",
                    name="Default",
                    adjustment=default.adjustment,
                    source="default",
                    description=default.description,
                    available_services=default.available_services,
                ),
                warnings=warnings,
                metadata=metadata,
            )
        return MatchResult(None, warnings=warnings, metadata={**metadata, "reason": "no_rule"})
