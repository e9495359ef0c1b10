"""
Baseline estimation and caching.

Baselines are computed once per subject from the first available window and
cached for the life of the process unless a caller invalidates them. Reads of
a cached baseline are lock-free; first-time creation is serialized per subject.
"""

from __future__ import annotations

import logging
import threading
from math import sqrt
from typing import Dict, List, Optional, Sequence

from src.core.config import BaselineConfig
from src.core.exceptions import InsufficientDataError
from src.data.schema import SubjectMetrics

from .schema import Baseline

logger = logging.getLogger(__name__)

# Metric index order used by Baseline.mean / Baseline.std.
TRACKED_METRICS = ("fantasy_points", "snap_percentage", "targets", "touches")


def series_mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def series_std(values: Sequence[float], std_floor: float = 1.0) -> float:
    """
    Population standard deviation, floored.

    Fewer than two samples or a zero spread return std_floor so the value is
    always safe as a divisor.
    """
    if len(values) < 2:
        return std_floor
    mean = series_mean(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    std = sqrt(variance)
    return std if std > 0 else std_floor


def seasonal_pattern(values: Sequence[float], period: int) -> List[float]:
    """
    Mean of every value sharing the same offset modulo period.

    Returns an empty list until at least one full period is available.
    """
    if len(values) < period:
        return []
    return [series_mean(values[offset::period]) for offset in range(period)]


class BaselineStore:
    """
    Per-subject baseline cache.

    Notes:
    - get_or_create() returns None for subjects with fewer than min_points
      primary samples; nothing is cached in that case.
    - Cached baselines are never recomputed; invalidate() forces a rebuild.
    """

    def __init__(self, config: Optional[BaselineConfig] = None) -> None:
        self.config = config or BaselineConfig()
        self._baselines: Dict[str, Baseline] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def get(self, subject_id: str) -> Optional[Baseline]:
        return self._baselines.get(subject_id)

    def put(self, subject_id: str, baseline: Baseline) -> None:
        with self._lock_for(subject_id):
            self._baselines[subject_id] = baseline

    def invalidate(self, subject_id: str) -> None:
        with self._lock_for(subject_id):
            self._baselines.pop(subject_id, None)

    def get_or_create(self, subject_id: str, metrics: SubjectMetrics) -> Optional[Baseline]:
        cached = self._baselines.get(subject_id)
        if cached is not None:
            return cached

        with self._lock_for(subject_id):
            cached = self._baselines.get(subject_id)
            if cached is not None:
                return cached

            try:
                baseline = self.compute(metrics)
            except InsufficientDataError as exc:
                logger.debug("No baseline for %s: %s", subject_id, exc)
                return None

            self._baselines[subject_id] = baseline
            logger.info("Created baseline for %s from %d samples", subject_id, baseline.count)
            return baseline

    def compute(self, metrics: SubjectMetrics) -> Baseline:
        """
        Build a baseline from the given window.

        Raises:
            InsufficientDataError: fewer than min_points primary samples
        """
        primary = metrics.series(TRACKED_METRICS[0])
        if len(primary) < self.config.min_points:
            raise InsufficientDataError(
                f"{len(primary)} samples, need {self.config.min_points}"
            )

        floor = self.config.std_floor
        return Baseline(
            mean=[series_mean(metrics.series(name)) for name in TRACKED_METRICS],
            std=[series_std(metrics.series(name), floor) for name in TRACKED_METRICS],
            seasonal_pattern=seasonal_pattern(primary, self.config.seasonal_period),
            count=len(primary),
        )

    def __len__(self) -> int:
        return len(self._baselines)

    def __contains__(self, subject_id: object) -> bool:
        return subject_id in self._baselines

    def _lock_for(self, subject_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(subject_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[subject_id] = lock
            return lock
