"""Geopricing request orchestration."""

from .service import GeopricingOrchestrator

__all__ = ["GeopricingOrchestrator"]
