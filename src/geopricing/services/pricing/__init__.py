"""Pricing math."""

from .calculator import (
    PriceBreakdown,
    ServiceLine,
    ServicePrice,
    calculate_prices,
    price_service,
    round_currency,
)
from .rate_table import RateTableRow, build_rate_table, explain_match

__all__ = [
    "PriceBreakdown",
    "RateTableRow",
    "ServiceLine",
    "ServicePrice",
    "build_rate_table",
    "calculate_prices",
    "explain_match",
    "price_service",
    "round_currency",
]
