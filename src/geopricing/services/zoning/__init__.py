"""Zone and postal-rule matching."""

from .base import MatchResult, ZoneMatch
from .dispatcher import get_policy, match_location
from .postal import extract_postal_code, is_valid_postal_code, normalize_postal_code
from .travel_time import validate_zones

__all__ = [
    "MatchResult",
    "ZoneMatch",
    "extract_postal_code",
    "get_policy",
    "is_valid_postal_code",
    "match_location",
    "normalize_postal_code",
    "validate_zones",
]
