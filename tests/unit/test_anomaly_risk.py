"""
Unit tests for injury-risk feature extraction and detection.
"""

import pytest

from src.anomaly.risk import RiskDetector, extract_health_features, injury_context
from src.anomaly.schema import AnomalySeverity, AnomalyType, RecommendedAction, Urgency
from src.anomaly.scoring import SeverityMapper
from src.core.config import ThresholdTables
from src.core.exceptions import ModelInferenceError
from src.data.schema import HealthData, PracticeStatus


@pytest.fixture
def questionable() -> HealthData:
    return HealthData(
        practice_participation=["full", "limited", "none"],
        injury_reports=["hamstring"],
        workload=[60.0, 70.0],
        days_rest=2,
    )


def _detector(model) -> RiskDetector:
    return RiskDetector(model, SeverityMapper(ThresholdTables()))


def test_health_features(questionable):
    features = extract_health_features(questionable)
    assert features == pytest.approx([0.5, 1.0, 65.0, 2 / 7])


def test_health_features_defaults():
    features = extract_health_features(HealthData(days_rest=10))
    assert features == [1.0, 0.0, 0.0, 1.0]


def test_practice_status_is_case_insensitive():
    health = HealthData(practice_participation=["FULL", "Limited"])
    assert health.practice_participation == [PracticeStatus.FULL, PracticeStatus.LIMITED]


class TestInjuryContext:
    """The four context messages, first match wins."""

    def test_no_practice_with_injury(self, questionable):
        assert injury_context(questionable) == "Did not practice with injury designation"

    def test_no_practice_without_injury_falls_through(self):
        health = HealthData(practice_participation=["none"], days_rest=2)
        assert injury_context(health) == "Short rest between games"

    def test_limited_practice(self):
        health = HealthData(practice_participation=["limited"], injury_reports=["ankle"], days_rest=2)
        assert injury_context(health) == "Limited practice participation"

    def test_short_rest(self):
        health = HealthData(practice_participation=["full"], days_rest=3.5)
        assert injury_context(health) == "Short rest between games"

    def test_fallback(self):
        health = HealthData(practice_participation=["full"], days_rest=4)
        assert injury_context(health) == "Multiple risk factors present"


def test_high_risk_anomaly(risk_model, questionable):
    model = risk_model(0.82)
    anomaly = _detector(model).detect_injury_risk("p1", questionable)

    assert anomaly is not None
    assert anomaly.type == AnomalyType.INJURY
    assert anomaly.severity == AnomalySeverity.HIGH
    assert anomaly.confidence == pytest.approx(0.82)
    assert anomaly.impact.recommended_action == RecommendedAction.MONITOR
    assert anomaly.impact.urgency == Urgency.THIS_WEEK
    assert anomaly.impact.projection_delta == pytest.approx(-4.1)
    assert anomaly.details.expected_value == 0.3
    assert anomaly.details.historical_context == "Did not practice with injury designation"
    assert anomaly.description == "Elevated injury risk detected"
    assert model.calls == [pytest.approx([0.5, 1.0, 65.0, 2 / 7])]


def test_critical_risk_benches_immediately(risk_model, questionable):
    anomaly = _detector(risk_model(0.95)).detect_injury_risk("p1", questionable)
    assert anomaly.severity == AnomalySeverity.CRITICAL
    assert anomaly.impact.recommended_action == RecommendedAction.BENCH
    assert anomaly.impact.urgency == Urgency.IMMEDIATE


@pytest.mark.parametrize("score", [0.1, 0.6, 0.69])
def test_low_risk_is_not_reported(risk_model, questionable, score):
    assert _detector(risk_model(score)).detect_injury_risk("p1", questionable) is None


@pytest.mark.parametrize("score", [1.5, -0.1, float("nan")])
def test_out_of_range_score_raises(risk_model, questionable, score):
    with pytest.raises(ModelInferenceError):
        _detector(risk_model(score)).detect_injury_risk("p1", questionable)


def test_model_exception_is_wrapped(failing_model, questionable):
    with pytest.raises(ModelInferenceError):
        _detector(failing_model).detect_injury_risk("p1", questionable)


def test_resolution_below_low_threshold(risk_model, questionable):
    assert _detector(risk_model(0.5)).is_resolved(questionable) is True
    assert _detector(risk_model(0.65)).is_resolved(questionable) is False
