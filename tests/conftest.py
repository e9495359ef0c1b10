"""
Pytest configuration and shared fixtures.

Provides deterministic model fakes, sample subjects, and metric/market/health
data for unit and integration tests.
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from src.anomaly.engine import AnomalyEngine
from src.anomaly.schema import (
    Anomaly,
    AnomalyDetails,
    AnomalyImpact,
    AnomalySeverity,
    AnomalyType,
    DetectionConfig,
    RecommendedAction,
    Urgency,
)
from src.core.config import AnomalyConfig
from src.core.exceptions import ProviderFetchError
from src.data.schema import HealthData, MarketData, Subject, SubjectMetrics


T0 = datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc)


class IdentityModel:
    """Reconstruction model that returns its input (zero error)."""

    def encode_decode(self, vector: Sequence[float]) -> List[float]:
        return list(vector)


class ConstantOffsetModel:
    """Reconstruction model that shifts every value by a fixed offset (error = offset**2)."""

    def __init__(self, offset: float) -> None:
        self.offset = offset

    def encode_decode(self, vector: Sequence[float]) -> List[float]:
        return [v + self.offset for v in vector]


class FixedRiskModel:
    """Risk model returning a fixed score and recording its inputs."""

    def __init__(self, score: float) -> None:
        self.value = score
        self.calls: List[List[float]] = []

    def score(self, features: Sequence[float]) -> float:
        self.calls.append(list(features))
        return self.value


class FailingModel:
    """Model whose every call raises."""

    def encode_decode(self, vector: Sequence[float]) -> List[float]:
        raise RuntimeError("model offline")

    def score(self, features: Sequence[float]) -> float:
        raise RuntimeError("model offline")


class InMemoryProvider:
    """
    Implements all three provider protocols from dictionaries.

    Subject ids listed in `failing` raise ProviderFetchError on every call.
    """

    def __init__(
        self,
        metrics: Dict[str, SubjectMetrics],
        market: Optional[Dict[str, MarketData]] = None,
        health: Optional[Dict[str, HealthData]] = None,
        failing: Sequence[str] = (),
    ) -> None:
        self.metrics = metrics
        self.market = market or {}
        self.health = health or {}
        self.failing = set(failing)
        self.calls: List[str] = []

    async def get_metrics(self, subject_id: str) -> SubjectMetrics:
        self.calls.append(subject_id)
        if subject_id in self.failing:
            raise ProviderFetchError(f"feed unavailable for {subject_id}")
        return self.metrics[subject_id]

    async def get_market(self, subject_id: str) -> MarketData:
        if subject_id in self.failing:
            raise ProviderFetchError(f"feed unavailable for {subject_id}")
        return self.market.get(subject_id, MarketData())

    async def get_health(self, subject_id: str) -> HealthData:
        if subject_id in self.failing:
            raise ProviderFetchError(f"feed unavailable for {subject_id}")
        return self.health.get(subject_id, HealthData())


def weekly_timestamps(count: int, start: datetime = T0) -> List[datetime]:
    return [start + timedelta(days=7 * i) for i in range(count)]


def make_anomaly(
    anomaly_id: str = "performance_p1_fantasy_points",
    subject_id: Optional[str] = "p1",
    team_id: Optional[str] = None,
    timestamp: datetime = T0,
    severity: AnomalySeverity = AnomalySeverity.MEDIUM,
    anomaly_type: AnomalyType = AnomalyType.PERFORMANCE,
) -> Anomaly:
    return Anomaly(
        id=anomaly_id,
        type=anomaly_type,
        severity=severity,
        confidence=0.5,
        subject_id=subject_id,
        subject_name=None,
        team_id=team_id,
        description="Exceptional Fantasy Points",
        details=AnomalyDetails(
            metric="Fantasy Points",
            expected_value=16.0,
            actual_value=40.0,
            deviation=2.0,
            historical_context="2.0 standard deviations from average",
        ),
        impact=AnomalyImpact(
            projection_delta=24.0,
            recommended_action=RecommendedAction.HOLD,
            urgency=Urgency.THIS_WEEK,
        ),
        timestamp=timestamp,
    )


@pytest.fixture
def anomaly_factory():
    """Factory fixture for Anomaly records (see make_anomaly)."""
    return make_anomaly


@pytest.fixture
def timestamps():
    """Factory fixture for weekly UTC timestamps starting at T0."""
    return weekly_timestamps


@pytest.fixture
def identity_model() -> IdentityModel:
    return IdentityModel()


@pytest.fixture
def offset_model():
    """Factory fixture: offset_model(0.6) reconstructs with error 0.36."""
    return ConstantOffsetModel


@pytest.fixture
def risk_model():
    """Factory fixture: risk_model(0.82) always scores 0.82."""
    return FixedRiskModel


@pytest.fixture
def failing_model() -> FailingModel:
    return FailingModel()


@pytest.fixture
def provider_factory():
    """Factory fixture building an InMemoryProvider."""
    return InMemoryProvider


@pytest.fixture
def anomaly_settings() -> AnomalyConfig:
    """
    Fixture providing default detector settings.

    Built explicitly so tests are unaffected by FANTASY_ANOMALY_* environment
    overrides.
    """
    return AnomalyConfig()


@pytest.fixture
def engine(anomaly_settings) -> AnomalyEngine:
    """Engine without models: statistical, trend, and market detectors only."""
    return AnomalyEngine(settings=anomaly_settings)


@pytest.fixture
def detection_config() -> DetectionConfig:
    return DetectionConfig(
        window_size_days=365,
        update_frequency_minutes=15,
        enabled_types={AnomalyType.PERFORMANCE, AnomalyType.USAGE, AnomalyType.MARKET, AnomalyType.INJURY},
    )


@pytest.fixture
def star_player() -> Subject:
    return Subject(id="p1", name="Star Receiver", team_id="KC")


@pytest.fixture
def spike_metrics() -> SubjectMetrics:
    """Four quiet weeks followed by a 40-point game (mean 16, std 12)."""
    return SubjectMetrics(
        subject_id="p1",
        fantasy_points=[10.0, 10.0, 10.0, 10.0, 40.0],
        timestamps=weekly_timestamps(5),
    )


@pytest.fixture
def sample_metrics_frame() -> pd.DataFrame:
    """
    Fixture providing a season of weekly metrics as a DataFrame.

    Columns mirror SubjectMetrics series; the index holds UTC timestamps.
    """
    weeks = 17
    frame = pd.DataFrame(
        {
            "fantasy_points": [12.0 + (i % 4) for i in range(weeks)],
            "snap_percentage": [0.70 + 0.01 * (i % 3) for i in range(weeks)],
            "targets": [0.20 + 0.01 * (i % 2) for i in range(weeks)],
            "touches": [15.0 + (i % 5) for i in range(weeks)],
            "efficiency": [0.8 + 0.05 * (i % 3) for i in range(weeks)],
        },
        index=pd.DatetimeIndex(weekly_timestamps(weeks)),
    )
    return frame


@pytest.fixture
def season_metrics(sample_metrics_frame) -> SubjectMetrics:
    """The season frame as a SubjectMetrics for subject "p2"."""
    frame = sample_metrics_frame
    return SubjectMetrics(
        subject_id="p2",
        timestamps=list(frame.index.to_pydatetime()),
        **{column: frame[column].tolist() for column in frame.columns},
    )


@pytest.fixture
def write_subject_dir(tmp_path):
    """
    Factory fixture writing a JSONSubjectSource directory.

    Usage: root = write_subject_dir(subjects, {"p1": {"metrics": {...}}})
    """

    def _write(subjects: List[Dict[str, object]], documents: Dict[str, Dict[str, object]]) -> Path:
        root = tmp_path / "subjects"
        root.mkdir(exist_ok=True)
        (root / "subjects.json").write_text(json.dumps(subjects), encoding="utf-8")
        for subject_id, document in documents.items():
            (root / f"{subject_id}.json").write_text(json.dumps(document, default=str), encoding="utf-8")
        return root

    return _write


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
