"""
Provider interfaces for metric, market, and health data.

The engine never collects data itself. Callers supply providers that return
validated schema objects for one subject per call. Calls may suspend on I/O.

Design:
- Three narrow async protocols, one per data family
- JSONSubjectSource implements all three from a directory of JSON documents
- Read or validation failures surface as ProviderFetchError / DataValidationError
- File reads run in a worker thread, one read per provider call
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from src.core.exceptions import DataValidationError, ProviderFetchError
from src.data.schema import HealthData, MarketData, Subject, SubjectMetrics

logger = logging.getLogger(__name__)


@runtime_checkable
class MetricsProvider(Protocol):
    async def get_metrics(self, subject_id: str) -> SubjectMetrics:
        ...


@runtime_checkable
class MarketDataProvider(Protocol):
    async def get_market(self, subject_id: str) -> MarketData:
        ...


@runtime_checkable
class HealthDataProvider(Protocol):
    async def get_health(self, subject_id: str) -> HealthData:
        ...


class JSONSubjectSource:
    """
    File-backed provider reading one JSON document per subject.

    Layout:
        <root>/subjects.json        [{"id": "p1", "name": "...", "team_id": "..."}]
        <root>/<subject_id>.json    {"metrics": {...}, "market": {...}, "health": {...}}

    Example subject document:
        {
          "metrics": {"fantasy_points": [12.1, 9.4, 18.0],
                      "timestamps": ["2025-09-07T17:00:00Z", ...]},
          "market": {"ownership": [41.0, 43.5], "trade_volume": [120, 135]},
          "health": {"practice_participation": ["full", "limited"],
                     "injury_reports": ["hamstring"], "workload": [62, 58],
                     "days_rest": 6}
        }

    Each call re-reads the file so that an external writer can refresh data
    between monitoring cycles.
    """

    def __init__(self, root: Union[str, Path], encoding: str = "utf-8"):
        """
        Initialize the source.

        Args:
            root: Directory holding subjects.json and per-subject documents
            encoding: File encoding (default utf-8)

        Raises:
            ProviderFetchError: If the directory doesn't exist
        """
        self.root = Path(root)
        self.encoding = encoding

        if not self.root.is_dir():
            raise ProviderFetchError(f"Subject data directory not found: {self.root}")

    def subjects(self) -> List[Subject]:
        path = self.root / "subjects.json"
        raw = self._read(path)
        if not isinstance(raw, list):
            raise DataValidationError(f"{path} must contain a JSON array of subjects")
        try:
            return [Subject(**item) for item in raw]
        except (TypeError, ValidationError) as e:
            raise DataValidationError(f"Invalid subject list in {path}: {e}") from e

    async def get_metrics(self, subject_id: str) -> SubjectMetrics:
        section = await asyncio.to_thread(self._section, subject_id, "metrics")
        return self._build(SubjectMetrics, {"subject_id": subject_id, **section}, subject_id)

    async def get_market(self, subject_id: str) -> MarketData:
        section = await asyncio.to_thread(self._section, subject_id, "market")
        return self._build(MarketData, section, subject_id)

    async def get_health(self, subject_id: str) -> HealthData:
        section = await asyncio.to_thread(self._section, subject_id, "health")
        return self._build(HealthData, section, subject_id)

    def _section(self, subject_id: str, name: str) -> Dict[str, Any]:
        document = self._read(self.root / f"{subject_id}.json")
        if not isinstance(document, dict):
            raise DataValidationError(f"Document for {subject_id} must be a JSON object")
        section = document.get(name, {})
        if not isinstance(section, dict):
            raise DataValidationError(f"Section '{name}' for {subject_id} must be an object")
        return section

    def _build(self, model, payload: Dict[str, Any], subject_id: str):
        try:
            return model(**payload)
        except ValidationError as e:
            raise DataValidationError(
                f"Invalid {model.__name__} payload for {subject_id}: {e}"
            ) from e

    def _read(self, path: Path) -> Any:
        try:
            with open(path, "r", encoding=self.encoding) as f:
                content = f.read().lstrip("\ufeff")
        except OSError as e:
            logger.error(f"Error reading subject data file {path}: {e}")
            raise ProviderFetchError(f"Failed to read {path}: {e}") from e

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise DataValidationError(f"Invalid JSON in {path}: {e}") from e
