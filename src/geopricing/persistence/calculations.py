"""Stores for CalculationRecord audit rows.

Records are written once per completed calculation. The only later change is
the converted-to-sale marker attached by `mark_converted`.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import PersistenceFailure
from ..models.domain import CalculationRecord

logger = logging.getLogger(__name__)


class CalculationStore(Protocol):
    def save(self, record: CalculationRecord) -> None:
        ...

    def load(self, calculation_id: str) -> dict:
        ...

    def mark_converted(self, calculation_id: str, converted_at: Optional[datetime] = None) -> dict:
        ...


class SupabaseCalculationStore:
    """Writes records to a Supabase table."""

    def __init__(self, client: Any, table: str | None = None) -> None:
        self.client = client
        self.table = table or settings.calculations_table

    def save(self, record: CalculationRecord) -> None:
        try:
            self.client.table(self.table).insert(record.to_dict()).execute()
        except Exception as e:
            logger.error(f"Failed to save calculation {record.calculation_id} to Supabase: {e}")
            raise PersistenceFailure(f"Could not persist calculation record: {e}") from e

    def load(self, calculation_id: str) -> dict:
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("calculation_id", calculation_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to load calculation {calculation_id} from Supabase: {e}")
            raise PersistenceFailure(f"Could not load calculation record: {e}") from e
        if not response.data:
            raise KeyError(calculation_id)
        return response.data[0]

    def mark_converted(self, calculation_id: str, converted_at: Optional[datetime] = None) -> dict:
        stamp = (converted_at or datetime.now(timezone.utc)).isoformat()
        try:
            # only rows without a marker are updated, so the first stamp sticks
            response = (
                self.client.table(self.table)
                .update({"converted_at": stamp})
                .eq("calculation_id", calculation_id)
                .is_("converted_at", "null")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to mark calculation {calculation_id} converted: {e}")
            raise PersistenceFailure(f"Could not update calculation record: {e}") from e
        if response.data:
            return response.data[0]
        return self.load(calculation_id)


class FileCalculationStore:
    """One JSON file per calculation under `root`."""

    def __init__(self, root: Path | None = None) -> None:
        base = root or settings.calculations_dir
        if base is None:
            raise ValueError("calculations_dir is not configured.")
        self.root = base.resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, calculation_id: str) -> Path:
        return self.root / f"{calculation_id}.json"

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)

    def save(self, record: CalculationRecord) -> None:
        try:
            self.write_json(self._path(record.calculation_id), record.to_dict())
        except OSError as e:
            raise PersistenceFailure(f"Could not persist calculation record: {e}") from e

    def load(self, calculation_id: str) -> dict:
        path = self._path(calculation_id)
        if not path.exists():
            raise KeyError(calculation_id)
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def mark_converted(self, calculation_id: str, converted_at: Optional[datetime] = None) -> dict:
        with self._lock:
            data = self.load(calculation_id)
            if data.get("converted_at") is None:
                data["converted_at"] = (converted_at or datetime.now(timezone.utc)).isoformat()
                try:
                    self.write_json(self._path(calculation_id), data)
                except OSError as e:
                    raise PersistenceFailure(f"Could not update calculation record: {e}") from e
            return data


def get_calculation_store() -> CalculationStore | None:
    """Supabase when configured, else the file store when a directory is set, else None."""
    client = get_supabase_client()
    if client is not None:
        return SupabaseCalculationStore(client)
    if settings.calculations_dir is not None:
        return FileCalculationStore(settings.calculations_dir)
    return None
