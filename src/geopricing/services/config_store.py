"""Versioned, append-only store of per-business pricing configurations."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..config import settings
from ..errors import ConfigurationMissing, ConfigVersionConflict, MalformedConfig
from ..models.domain import PricingConfig, ZoneSchedule
from ..schemas.configs import PricingConfigCreate
from .zoning.travel_time import validate_zones

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigStore:
    """In-memory version history per business.

    Versions are never edited in place. Creating a config appends version
    `latest + 1` and swaps the previous active version for an inactive copy,
    both under the business's lock, so two active versions never coexist.
    """

    def __init__(self, *, reject_malformed_zones: Optional[bool] = None) -> None:
        self.reject_malformed_zones = (
            settings.reject_malformed_zones if reject_malformed_zones is None else reject_malformed_zones
        )
        self._versions: dict[str, list[PricingConfig]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, business_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(business_id)
            if lock is None:
                lock = self._locks[business_id] = threading.Lock()
            return lock

    def _history(self, business_id: str) -> tuple[PricingConfig, ...]:
        """Snapshot of a business's versions; unknown businesses get no lock."""
        with self._locks_guard:
            lock = self._locks.get(business_id)
        if lock is None:
            return ()
        with lock:
            return tuple(self._versions.get(business_id, ()))

    def get_active_config(self, business_id: str, now: Optional[datetime] = None) -> PricingConfig:
        """Return the effective config with the highest version, or raise ConfigurationMissing."""
        moment = now or _utcnow()
        candidates = [c for c in self._history(business_id) if c.is_effective(moment)]
        if not candidates:
            raise ConfigurationMissing(f"No active pricing configuration for business '{business_id}'.")
        return max(candidates, key=lambda c: c.version)

    def create_config(
        self,
        business_id: str,
        data: PricingConfigCreate | Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> PricingConfig:
        if not isinstance(data, PricingConfigCreate):
            data = PricingConfigCreate.model_validate(data)
        if expected_version is None:
            expected_version = data.expected_version

        moment = now or _utcnow()
        with self._lock_for(business_id):
            history = self._versions.setdefault(business_id, [])
            latest = history[-1].version if history else 0
            if expected_version is not None and expected_version != latest:
                raise ConfigVersionConflict(
                    f"Business '{business_id}' is at version {latest}, expected {expected_version}."
                )

            config = data.to_domain(business_id, latest + 1, moment)
            if isinstance(config.schedule, ZoneSchedule):
                problems = validate_zones(config.schedule.zones)
                if problems and self.reject_malformed_zones:
                    raise MalformedConfig(f"Zone configuration for '{business_id}' is malformed.", problems)
                for problem in problems:
                    logger.warning(f"Config {business_id} v{config.version}: {problem}")

            for index, previous in enumerate(history):
                if previous.is_active:
                    history[index] = replace(previous, is_active=False)
            history.append(config)

        logger.info(f"Created pricing config {business_id} v{config.version} ({config.schedule.kind})")
        return config

    def list_configs(self, business_id: str) -> list[PricingConfig]:
        """Full version history, newest first."""
        return list(reversed(self._history(business_id)))

    def get_config(self, business_id: str, version: int) -> PricingConfig:
        for config in self._history(business_id):
            if config.version == version:
                return config
        raise ConfigurationMissing(f"Business '{business_id}' has no configuration version {version}.")

    def business_ids(self) -> list[str]:
        with self._locks_guard:
            return sorted(business_id for business_id, history in self._versions.items() if history)

    def load_from_file(self, path: Path) -> int:
        """Seed configs from a JSON file of `{"configs": [{"business_id": ..., ...}]}`.

        Entries are applied in file order, so later entries for a business
        become newer versions.
        """
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

        entries = payload.get("configs", []) if isinstance(payload, dict) else payload
        loaded = 0
        for entry in entries:
            business_id = entry.get("business_id")
            if not business_id:
                raise ValueError(f"Config entry in '{path}' is missing business_id.")
            body = {key: value for key, value in entry.items() if key != "business_id"}
            try:
                self.create_config(business_id, body)
            except ValidationError as e:
                raise ValueError(f"Invalid config for '{business_id}' in '{path}': {e}") from e
            loaded += 1
        logger.info(f"Loaded {loaded} pricing configs from {path}")
        return loaded
