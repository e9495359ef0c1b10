"""
Injury-risk detection backed by an external sequence model.

Health data is reduced to a four-value feature vector:
[practice score, injury report count, average workload, rest score].
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from src.core.config import RiskConfig
from src.core.exceptions import ModelInferenceError
from src.data.schema import HealthData, PracticeStatus

from .detectors import SubjectRef, as_subject, subject_fields
from .models import SequenceRiskModel
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
from .scoring import SeverityMapper

logger = logging.getLogger(__name__)

RISK_METRIC = "Injury Risk Score"

PRACTICE_SCORES = {
    PracticeStatus.FULL: 1.0,
    PracticeStatus.LIMITED: 0.5,
    PracticeStatus.NONE: 0.0,
}


def extract_health_features(health: HealthData, rest_normalizer_days: float = 7.0) -> List[float]:
    """
    Build the risk model's input vector.

    An empty participation history scores as full participation; an empty
    workload history averages to zero.
    """
    participation = health.practice_participation
    if participation:
        practice_score = sum(PRACTICE_SCORES[p] for p in participation) / len(participation)
    else:
        practice_score = 1.0

    workload = health.workload
    avg_workload = sum(workload) / len(workload) if workload else 0.0
    rest_score = min(health.days_rest / rest_normalizer_days, 1.0)

    return [practice_score, float(len(health.injury_reports)), avg_workload, rest_score]


def injury_context(health: HealthData, short_rest_days: float = 4.0) -> str:
    """
    Explain the dominant risk factor. First matching rule wins.
    """
    recent = health.practice_participation[-1] if health.practice_participation else None

    if recent == PracticeStatus.NONE and len(health.injury_reports) > 0:
        return "Did not practice with injury designation"
    if recent == PracticeStatus.LIMITED:
        return "Limited practice participation"
    if health.days_rest < short_rest_days:
        return "Short rest between games"
    return "Multiple risk factors present"


@dataclass
class RiskDetector:
    """
    Converts a model risk score into an injury anomaly.

    Scores below the injury table's medium threshold are not reported.
    """

    model: SequenceRiskModel
    mapper: SeverityMapper
    config: RiskConfig = field(default_factory=RiskConfig)

    def risk_score(self, health: HealthData) -> float:
        features = extract_health_features(health, self.config.rest_normalizer_days)
        try:
            score = float(self.model.score(features))
        except ModelInferenceError:
            raise
        except Exception as exc:
            raise ModelInferenceError(f"Risk model failed: {exc}") from exc

        if not math.isfinite(score) or not 0.0 <= score <= 1.0:
            raise ModelInferenceError(f"Risk model returned invalid score {score!r}")
        return score

    def detect_injury_risk(self, subject: SubjectRef, health: HealthData) -> Optional[Anomaly]:
        score = self.risk_score(health)
        severity = self.mapper.injury_severity(score)
        if severity == AnomalySeverity.LOW:
            return None

        subject = as_subject(subject)
        critical = severity == AnomalySeverity.CRITICAL
        logger.debug("Injury risk %.2f (%s) for %s", score, severity.value, subject.id if subject else "<unknown>")

        return Anomaly(
            id=anomaly_id(AnomalyType.INJURY, subject.id if subject else None, RISK_METRIC),
            type=AnomalyType.INJURY,
            severity=severity,
            confidence=score,
            description="Elevated injury risk detected",
            details=AnomalyDetails(
                metric=RISK_METRIC,
                expected_value=self.config.expected_risk,
                actual_value=score,
                deviation=score - self.config.expected_risk,
                historical_context=injury_context(health, self.config.short_rest_days),
            ),
            impact=AnomalyImpact(
                projection_delta=-score * self.config.projection_scale,
                recommended_action=RecommendedAction.BENCH if critical else RecommendedAction.MONITOR,
                urgency=Urgency.IMMEDIATE if critical else Urgency.THIS_WEEK,
            ),
            **subject_fields(subject),
        )

    def is_resolved(self, health: HealthData) -> bool:
        return self.risk_score(health) < self.mapper.tables.injury.low
