"""
Scoring and severity mapping for anomalies.

Maps deviations to severity levels with configurable thresholds, and maps
severity plus direction to a recommended roster action.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.core.config import SeverityThresholds, ThresholdTables

from .schema import AnomalySeverity, AnomalyType, RecommendedAction, Urgency


def severity_for(value: float, thresholds: SeverityThresholds) -> AnomalySeverity:
    """
    Map a deviation magnitude onto a severity table.

    Values below the medium threshold (including those below low) map to LOW;
    callers decide separately whether a value triggers at all.
    """

    if value >= thresholds.critical:
        return AnomalySeverity.CRITICAL
    if value >= thresholds.high:
        return AnomalySeverity.HIGH
    if value >= thresholds.medium:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


@dataclass
class SeverityMapper:
    """
    Maps deviation metrics to severity levels per anomaly type.
    """

    tables: ThresholdTables

    def zscore_severity(self, zscore: float, anomaly_type: AnomalyType) -> AnomalySeverity:
        return severity_for(abs(zscore), self.tables.zscore_table(anomaly_type.value))

    def injury_severity(self, risk_score: float) -> AnomalySeverity:
        return severity_for(risk_score, self.tables.injury)

    def market_severity(self, rate_change: float) -> AnomalySeverity:
        return severity_for(abs(rate_change), self.tables.market)


def recommended_action(
    anomaly_type: AnomalyType, severity: AnomalySeverity, is_positive: bool
) -> RecommendedAction:
    """
    Roster action for a statistical anomaly.

    performance: start/hold when above baseline, bench/monitor when below,
    the stronger action only at critical severity.
    usage: trade on a non-low drop. injury: bench when critical.
    """

    critical = severity == AnomalySeverity.CRITICAL
    if anomaly_type == AnomalyType.PERFORMANCE:
        if is_positive:
            return RecommendedAction.START if critical else RecommendedAction.HOLD
        return RecommendedAction.BENCH if critical else RecommendedAction.MONITOR
    if anomaly_type == AnomalyType.USAGE:
        if not is_positive and severity != AnomalySeverity.LOW:
            return RecommendedAction.TRADE
    elif anomaly_type == AnomalyType.INJURY:
        return RecommendedAction.BENCH if critical else RecommendedAction.MONITOR
    return RecommendedAction.MONITOR


def urgency_for(severity: AnomalySeverity) -> Urgency:
    return Urgency.IMMEDIATE if severity == AnomalySeverity.CRITICAL else Urgency.THIS_WEEK


def overall_severity(*severities: AnomalySeverity) -> AnomalySeverity:
    """
    Return the highest severity among inputs.
    """

    order = [
        AnomalySeverity.LOW,
        AnomalySeverity.MEDIUM,
        AnomalySeverity.HIGH,
        AnomalySeverity.CRITICAL,
    ]
    highest_index = max(order.index(s) for s in severities)
    return order[highest_index]
