"""
Multi-metric pattern detection via reconstruction error.

Recent samples of several metrics are z-normalized, flattened into a fixed
length vector, and passed through an encode/decode model. Inputs the model
cannot reconstruct well do not fit learned normal patterns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from src.core.config import PatternConfig
from src.core.exceptions import ModelInferenceError
from src.data.schema import SubjectMetrics

from .detectors import SubjectRef, as_subject, subject_fields
from .models import ReconstructionModel
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

logger = logging.getLogger(__name__)

PATTERN_METRICS = ("fantasy_points", "snap_percentage", "targets", "touches", "efficiency")
PATTERN_METRIC_NAME = "Performance Pattern"


def normalize(values: Sequence[float]) -> List[float]:
    """
    Z-normalize a short series against its own mean and spread.

    Series with fewer than two samples use a unit spread; a flat series maps
    to zeros.
    """
    if not values:
        return []
    series = np.asarray(values, dtype=np.float64)
    std = float(series.std()) if len(series) > 1 else 1.0
    if np.isclose(std, 0.0):
        return [0.0] * len(series)
    return ((series - series.mean()) / std).tolist()


def build_feature_vector(
    metrics: SubjectMetrics, recent_samples: int = 5, length: int = 25
) -> np.ndarray:
    """
    Concatenate the normalized recent samples of each pattern metric.

    The result is zero-padded or truncated to exactly `length` entries.
    """
    features: List[float] = []
    for name in PATTERN_METRICS:
        recent = metrics.series(name)[-recent_samples:]
        features.extend(normalize(recent))

    vector = np.zeros(length, dtype=np.float64)
    count = min(len(features), length)
    vector[:count] = features[:count]
    return vector


def reconstruction_error(original: np.ndarray, reconstructed: Sequence[float]) -> float:
    """
    Mean squared error between a vector and its reconstruction.

    Raises:
        ModelInferenceError: if the reconstruction has the wrong shape or
        contains non-finite values.
    """
    output = np.asarray(reconstructed, dtype=np.float64).reshape(-1)
    if output.shape != original.shape:
        raise ModelInferenceError(
            f"Reconstruction has {output.size} values, expected {original.size}"
        )
    if not np.all(np.isfinite(output)):
        raise ModelInferenceError("Reconstruction contains non-finite values")
    return float(np.mean((original - output) ** 2))


@dataclass
class PatternDetector:
    """
    Flags subjects whose recent multi-metric profile reconstructs poorly.

    Model failures raise ModelInferenceError; the caller decides whether to
    omit this detector's contribution.
    """

    model: ReconstructionModel
    config: PatternConfig = field(default_factory=PatternConfig)

    def error_for(self, metrics: SubjectMetrics) -> float:
        vector = build_feature_vector(metrics, self.config.recent_samples, self.config.vector_length)
        try:
            reconstructed = self.model.encode_decode(vector.tolist())
        except ModelInferenceError:
            raise
        except Exception as exc:
            raise ModelInferenceError(f"Reconstruction model failed: {exc}") from exc
        return reconstruction_error(vector, reconstructed)

    def detect_complex(self, subject: SubjectRef, metrics: SubjectMetrics) -> Optional[Anomaly]:
        error = self.error_for(metrics)
        if error <= self.config.error_threshold:
            return None

        subject = as_subject(subject)
        severity = (
            AnomalySeverity.HIGH
            if error > self.config.high_error_threshold
            else AnomalySeverity.MEDIUM
        )
        logger.debug("Pattern error %.3f for %s", error, subject.id if subject else "<unknown>")

        return Anomaly(
            id=anomaly_id(AnomalyType.PERFORMANCE, subject.id if subject else None, PATTERN_METRIC_NAME),
            type=AnomalyType.PERFORMANCE,
            severity=severity,
            confidence=min(error, 1.0),
            description="Unusual performance pattern detected",
            details=AnomalyDetails(
                metric=PATTERN_METRIC_NAME,
                expected_value=self.config.expected_error,
                actual_value=error,
                deviation=error - self.config.expected_error,
                historical_context="Multiple metrics showing unusual correlation",
            ),
            impact=AnomalyImpact(
                projection_delta=-error * self.config.projection_scale,
                recommended_action=RecommendedAction.MONITOR,
                urgency=Urgency.THIS_WEEK,
            ),
            **subject_fields(subject),
        )

    def is_resolved(self, metrics: SubjectMetrics) -> bool:
        return self.error_for(metrics) <= self.config.resolve_error
