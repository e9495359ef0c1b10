"""
Market anomaly detection for ownership and trade activity.

Two independent checks:
- Ownership rate-of-change between the last two samples
- Trade-volume spike against the trailing average
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from src.core.config import MarketConfig

from .detectors import SubjectRef, as_subject, subject_fields
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
from .scoring import SeverityMapper, urgency_for

OWNERSHIP_METRIC = "Ownership %"
TRADE_VOLUME_METRIC = "Trade Volume"


def rate_of_change(values: Sequence[float], zero_base_rate: float = 10.0) -> float:
    """
    Relative change between the last two samples.

    A rise from zero reports zero_base_rate; fewer than two samples report 0.
    """
    if len(values) < 2:
        return 0.0
    recent, previous = values[-1], values[-2]
    if previous == 0:
        return zero_base_rate if recent > 0 else 0.0
    return (recent - previous) / previous


@dataclass
class MarketDetector:
    """
    Ownership and trade-volume detector.

    The ownership check fires when |rate| reaches the market table's medium
    threshold; the volume check fires when the latest sample exceeds
    volume_spike_multiple times the average of the preceding window.
    """

    mapper: SeverityMapper
    config: MarketConfig = field(default_factory=MarketConfig)

    def detect_market(
        self,
        subject: SubjectRef,
        ownership: Sequence[float],
        trade_volume: Sequence[float],
    ) -> List[Anomaly]:
        subject = as_subject(subject)
        anomalies: List[Anomaly] = []

        ownership_anomaly = self.check_ownership(subject, ownership)
        if ownership_anomaly is not None:
            anomalies.append(ownership_anomaly)

        volume_anomaly = self.check_trade_volume(subject, trade_volume)
        if volume_anomaly is not None:
            anomalies.append(volume_anomaly)

        return anomalies

    def check_ownership(self, subject: SubjectRef, ownership: Sequence[float]) -> Optional[Anomaly]:
        change = rate_of_change(ownership, self.config.zero_base_rate)
        if abs(change) < self.mapper.tables.market.medium:
            return None

        subject = as_subject(subject)
        severity = self.mapper.market_severity(change)
        increase = change > 0

        return Anomaly(
            id=anomaly_id(AnomalyType.MARKET, subject.id if subject else None, OWNERSHIP_METRIC),
            type=AnomalyType.MARKET,
            severity=severity,
            confidence=self.config.ownership_confidence,
            description=f"Unusual {'increase' if increase else 'decrease'} in ownership",
            details=AnomalyDetails(
                metric=OWNERSHIP_METRIC,
                expected_value=ownership[-2],
                actual_value=ownership[-1],
                deviation=change,
                historical_context="Significant change compared to typical ownership patterns",
            ),
            impact=AnomalyImpact(
                projection_delta=0.0,
                recommended_action=RecommendedAction.MONITOR if increase else RecommendedAction.PICKUP,
                urgency=urgency_for(severity),
            ),
            **subject_fields(subject),
        )

    def trailing_average(self, trade_volume: Sequence[float]) -> Optional[float]:
        """Mean of the last volume_window samples, latest included, over the full window."""
        history = list(trade_volume)[-self.config.volume_window:]
        if not history:
            return None
        return sum(history) / self.config.volume_window

    def check_trade_volume(self, subject: SubjectRef, trade_volume: Sequence[float]) -> Optional[Anomaly]:
        average = self.trailing_average(trade_volume)
        if average is None:
            return None
        current = trade_volume[-1]
        if current <= average * self.config.volume_spike_multiple:
            return None

        subject = as_subject(subject)
        deviation = (current - average) / average if average else current

        return Anomaly(
            id=anomaly_id(AnomalyType.MARKET, subject.id if subject else None, TRADE_VOLUME_METRIC),
            type=AnomalyType.MARKET,
            severity=AnomalySeverity.MEDIUM,
            confidence=self.config.volume_confidence,
            description="Unusually high trade activity",
            details=AnomalyDetails(
                metric=TRADE_VOLUME_METRIC,
                expected_value=average,
                actual_value=current,
                deviation=deviation,
                historical_context=(
                    f"Trade volume significantly above {self.config.volume_window}-day average"
                ),
            ),
            impact=AnomalyImpact(
                projection_delta=0.0,
                recommended_action=RecommendedAction.MONITOR,
                urgency=Urgency.THIS_WEEK,
            ),
            **subject_fields(subject),
        )

    def ownership_resolved(self, ownership: Sequence[float]) -> Optional[bool]:
        if len(ownership) < 2:
            return None
        change = rate_of_change(ownership, self.config.zero_base_rate)
        return abs(change) < self.mapper.tables.market.low

    def trade_volume_resolved(self, trade_volume: Sequence[float]) -> Optional[bool]:
        average = self.trailing_average(trade_volume)
        if average is None:
            return None
        return trade_volume[-1] <= average * self.config.volume_resolve_multiple
