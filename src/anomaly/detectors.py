"""
Detectors for statistical deviations on single metric series.

Implements explainable methods:
- Z-score detection against a cached baseline
- Short-window monotonic trend detection
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from src.core.config import StatisticalConfig, TrendConfig
from src.data.schema import Subject

from .schema import (
    Anomaly,
    AnomalyDetails,
    AnomalyImpact,
    AnomalySeverity,
    AnomalyType,
    RecommendedAction,
    Urgency,
    anomaly_id,
)
from .scoring import SeverityMapper, recommended_action, urgency_for

SubjectRef = Union[Subject, str, None]


def as_subject(subject: SubjectRef) -> Optional[Subject]:
    if subject is None or isinstance(subject, Subject):
        return subject
    return Subject(id=subject)


def subject_fields(subject: Optional[Subject]) -> dict:
    if subject is None:
        return {}
    return {"subject_id": subject.id, "subject_name": subject.name, "team_id": subject.team_id}


@dataclass
class StatisticalDetector:
    """
    Z-score detector for the latest sample of a metric series.

    Series shorter than min_points are skipped without an anomaly. A
    non-positive std is replaced by 1.0 before dividing.
    """

    mapper: SeverityMapper
    config: StatisticalConfig = field(default_factory=StatisticalConfig)

    def zscore(self, values: Sequence[float], mean: float, std: float) -> Optional[float]:
        if len(values) < self.config.min_points:
            return None
        if std <= 0:
            std = 1.0
        return abs(values[-1] - mean) / std

    def detect(
        self,
        subject: SubjectRef,
        values: Sequence[float],
        mean: float,
        std: float,
        anomaly_type: Union[AnomalyType, str],
        metric_name: str,
    ) -> List[Anomaly]:
        anomaly_type = AnomalyType(anomaly_type)
        z = self.zscore(values, mean, std)
        if z is None:
            return []

        trigger = self.mapper.tables.zscore_table(anomaly_type.value).low
        if z <= trigger:
            return []

        recent = values[-1]
        severity = self.mapper.zscore_severity(z, anomaly_type)
        is_positive = recent > mean
        weight = self.config.projection_weights.get(
            anomaly_type.value, self.config.default_projection_weight
        )
        subject = as_subject(subject)

        return [
            Anomaly(
                id=anomaly_id(anomaly_type, subject.id if subject else None, metric_name),
                type=anomaly_type,
                severity=severity,
                confidence=min(z / self.config.confidence_scale, 1.0),
                description=f"{'Exceptional' if is_positive else 'Poor'} {metric_name}",
                details=AnomalyDetails(
                    metric=metric_name,
                    expected_value=mean,
                    actual_value=recent,
                    deviation=z,
                    historical_context=f"{z:.1f} standard deviations from average",
                ),
                impact=AnomalyImpact(
                    projection_delta=(recent - mean) * weight,
                    recommended_action=recommended_action(anomaly_type, severity, is_positive),
                    urgency=urgency_for(severity),
                ),
                **subject_fields(subject),
            )
        ]

    def is_resolved(self, values: Sequence[float], mean: float, std: float) -> Optional[bool]:
        """True once the latest z-score falls below the resolution level; None without data."""
        z = self.zscore(values, mean, std)
        if z is None:
            return None
        return z < self.config.resolve_zscore


@dataclass
class TrendDetector:
    """
    Flags a sustained directional run over the last few samples.

    Only strictly increasing or strictly decreasing runs count; a tie anywhere
    in the window aborts detection.
    """

    config: TrendConfig = field(default_factory=TrendConfig)

    def measure(self, values: Sequence[float]) -> Optional[Tuple[int, float]]:
        """
        Return (direction, change_rate) for the trailing window.

        direction is +1, -1, or 0 when the run is not strictly monotonic.
        None means the series is too short or starts at zero.
        """
        if len(values) < self.config.min_points:
            return None
        run = list(values[-self.config.window:])
        first, last = run[0], run[-1]
        if first == 0:
            return None

        pairs = list(zip(run, run[1:]))
        if all(b > a for a, b in pairs):
            direction = 1
        elif all(b < a for a, b in pairs):
            direction = -1
        else:
            direction = 0
        return direction, abs((last - first) / first)

    def detect_trend(
        self,
        values: Sequence[float],
        subject: SubjectRef = None,
        metric_name: str = "Performance Trend",
    ) -> Optional[Anomaly]:
        measured = self.measure(values)
        if measured is None:
            return None
        direction, change_rate = measured
        if direction == 0 or change_rate < self.config.min_change_rate:
            return None

        increasing = direction > 0
        run = values[-self.config.window:]
        subject = as_subject(subject)
        severity = (
            AnomalySeverity.MEDIUM
            if change_rate > self.config.medium_change_rate
            else AnomalySeverity.LOW
        )

        return Anomaly(
            id=anomaly_id(AnomalyType.PERFORMANCE, subject.id if subject else None, metric_name),
            type=AnomalyType.PERFORMANCE,
            severity=severity,
            confidence=self.config.confidence,
            description=f"{'Upward' if increasing else 'Downward'} trend detected",
            details=AnomalyDetails(
                metric=metric_name,
                expected_value=run[0],
                actual_value=run[-1],
                deviation=change_rate,
                historical_context=f"{change_rate * 100:.0f}% change over {len(run)} periods",
            ),
            impact=AnomalyImpact(
                projection_delta=direction * change_rate * self.config.projection_scale,
                recommended_action=RecommendedAction.START if increasing else RecommendedAction.MONITOR,
                urgency=Urgency.THIS_WEEK,
            ),
            **subject_fields(subject),
        )

    def is_resolved(self, values: Sequence[float], increasing: bool) -> Optional[bool]:
        measured = self.measure(values)
        if measured is None:
            return None
        direction, change_rate = measured
        if direction != (1 if increasing else -1):
            return True
        return change_rate < self.config.resolve_change_rate
