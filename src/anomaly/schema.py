"""
Schema definitions for fantasy anomaly detection.

All anomaly outputs are deterministic and explainable. Each anomaly references
its observed value, expected value, and computed deviation. Serialized anomalies
are flat JSON objects with camelCase keys and ISO-8601 timestamps.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.core.exceptions import ConfigurationError


class AnomalyType(str, Enum):
    """Anomaly classes reported by the engine."""

    PERFORMANCE = "performance"
    INJURY = "injury"
    USAGE = "usage"
    MARKET = "market"
    SOCIAL = "social"
    WEATHER = "weather"


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecommendedAction(str, Enum):
    START = "start"
    BENCH = "bench"
    TRADE = "trade"
    PICKUP = "pickup"
    HOLD = "hold"
    MONITOR = "monitor"


class Urgency(str, Enum):
    IMMEDIATE = "immediate"
    THIS_WEEK = "this_week"
    MONITOR = "monitor"


class Sensitivity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DetectorKind(str, Enum):
    """Detector that produced an anomaly; used to re-run its check on reconciliation."""

    STATISTICAL = "statistical"
    TREND = "trend"
    PATTERN = "pattern"
    OWNERSHIP = "ownership"
    TRADE_VOLUME = "trade_volume"
    INJURY_RISK = "injury_risk"


# Anomaly types that have at least one detector.
DETECTABLE_TYPES = frozenset(
    {AnomalyType.PERFORMANCE, AnomalyType.USAGE, AnomalyType.MARKET, AnomalyType.INJURY}
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class AnomalyDetails(_CamelModel):
    """
    Measurement behind an anomaly.

    Fields:
    - metric: human-readable metric name
    - expected_value: baseline or reference value
    - actual_value: observed value
    - deviation: detector-specific deviation (z-score, change rate, error)
    - historical_context: short explanation of the deviation
    """

    metric: str
    expected_value: float
    actual_value: float
    deviation: float
    historical_context: str


class AnomalyImpact(_CamelModel):
    """
    Fantasy impact of an anomaly.

    Fields:
    - projection_delta: suggested change to the subject's projection
    - recommended_action: roster action
    - urgency: how soon the action matters
    """

    projection_delta: float
    recommended_action: RecommendedAction
    urgency: Urgency


class Anomaly(_CamelModel):
    """
    A single detected anomaly. Immutable once created.

    The id is derived from (type, subject, metric) so repeated detections of
    the same condition share an id.
    """

    id: str
    type: AnomalyType
    severity: AnomalySeverity
    confidence: float = Field(ge=0.0, le=1.0)
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    team_id: Optional[str] = None
    description: str
    details: AnomalyDetails
    impact: AnomalyImpact
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    related_anomaly_ids: List[str] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # offset-less ISO strings are read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: str) -> "Anomaly":
        return cls.model_validate_json(payload)

    def to_dict(self) -> dict:
        return json.loads(self.to_json())


def anomaly_id(anomaly_type: AnomalyType, subject_id: Optional[str], metric: str) -> str:
    """
    Build the deduplication id for an anomaly.

    The metric slug stands in for the detector: each detector check reports
    under its own metric name, so one subject can hold several alerts of the
    same type (e.g. "Snap Percentage" and "Target Share" usage alerts), each
    resolved by re-running its own check.

    Example: (performance, "p1", "Fantasy Points") -> "performance_p1_fantasy_points"
    """
    slug = re.sub(r"[^a-z0-9]+", "_", metric.lower()).strip("_")
    return f"{anomaly_type.value}_{subject_id or 'unknown'}_{slug}"


class Baseline(BaseModel):
    """
    Cached statistical summary for one subject.

    Fields:
    - mean/std: one slot per tracked metric index (std >= std_floor)
    - seasonal_pattern: per-offset mean of the primary metric (may be empty)
    - count: samples in the primary metric when the baseline was computed
    """

    model_config = ConfigDict(frozen=True)

    mean: List[float]
    std: List[float]
    seasonal_pattern: List[float] = Field(default_factory=list)
    count: int = 0
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DetectionConfig(BaseModel):
    """
    Caller-supplied settings for one monitoring cycle.

    Fields:
    - sensitivity: operator-facing label recorded with each cycle
    - window_size_days: history window read from each metric series
    - update_frequency_minutes: delay between cycles
    - enabled_types: anomaly types whose detectors run
    """

    sensitivity: Sensitivity = Sensitivity.MEDIUM
    window_size_days: int = 28
    update_frequency_minutes: int = 15
    enabled_types: Set[AnomalyType] = Field(
        default_factory=lambda: set(DETECTABLE_TYPES)
    )

    def is_enabled(self, anomaly_type: AnomalyType) -> bool:
        return anomaly_type in self.enabled_types

    def validate_for_loop(self, available: Iterable[AnomalyType] = DETECTABLE_TYPES) -> None:
        """
        Fail fast on settings that would break every cycle.

        Raises:
            ConfigurationError: non-positive frequency or window, or no
            enabled type backed by an available detector.
        """
        if self.update_frequency_minutes <= 0:
            raise ConfigurationError(
                f"update_frequency_minutes must be positive, got {self.update_frequency_minutes}"
            )
        if self.window_size_days <= 0:
            raise ConfigurationError(
                f"window_size_days must be positive, got {self.window_size_days}"
            )
        if not self.enabled_types & set(available):
            enabled = sorted(t.value for t in self.enabled_types) or ["<none>"]
            raise ConfigurationError(
                f"enabled_types {', '.join(enabled)} reference no implemented detector"
            )
