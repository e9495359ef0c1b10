"""
Anomaly module: statistical and model-backed anomaly detection.

Implements cached baselines, per-class detectors, severity scoring, and the
engine that runs them for one subject at a time.
"""

from .baselines import TRACKED_METRICS, BaselineStore
from .detectors import StatisticalDetector, TrendDetector
from .engine import AnomalyEngine, Detection, SubjectReport
from .market import MarketDetector, rate_of_change
from .models import ReconstructionModel, SequenceRiskModel
from .pattern import PatternDetector, build_feature_vector, reconstruction_error
from .risk import RiskDetector, extract_health_features, injury_context
from .schema import (
    Anomaly,
    AnomalyDetails,
    AnomalyImpact,
    AnomalySeverity,
    AnomalyType,
    Baseline,
    DetectionConfig,
    DetectorKind,
    RecommendedAction,
    Sensitivity,
    Urgency,
    anomaly_id,
)
from .scoring import SeverityMapper, overall_severity, recommended_action, severity_for

__all__ = [
	"AnomalyEngine",
	"Anomaly",
	"AnomalyDetails",
	"AnomalyImpact",
	"AnomalySeverity",
	"AnomalyType",
	"Baseline",
	"BaselineStore",
	"Detection",
	"DetectionConfig",
	"DetectorKind",
	"MarketDetector",
	"PatternDetector",
	"ReconstructionModel",
	"RecommendedAction",
	"RiskDetector",
	"SequenceRiskModel",
	"Sensitivity",
	"SeverityMapper",
	"StatisticalDetector",
	"SubjectReport",
	"TRACKED_METRICS",
	"TrendDetector",
	"Urgency",
	"anomaly_id",
	"build_feature_vector",
	"extract_health_features",
	"injury_context",
	"overall_severity",
	"rate_of_change",
	"reconstruction_error",
	"recommended_action",
	"severity_for",
]
