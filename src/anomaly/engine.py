"""
Fantasy anomaly detection engine.

Consumes one subject's snapshot (metrics, market, health), reads or creates
its cached baseline, runs every enabled detector, and returns the detections
together with the detectors that failed. The engine holds no alert state;
correlation and lifecycle live in the service layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from src.core.config import AnomalyConfig, config
from src.core.exceptions import ModelInferenceError
from src.data.schema import HealthData, MarketData, Subject, SubjectMetrics, SubjectSnapshot
from src.data.windowing import recent_window

from .baselines import TRACKED_METRICS, BaselineStore
from .detectors import StatisticalDetector, TrendDetector
from .market import MarketDetector
from .models import ReconstructionModel, SequenceRiskModel
from .pattern import PatternDetector
from .risk import RiskDetector
from .schema import Anomaly, AnomalyType, DetectionConfig, DetectorKind
from .scoring import SeverityMapper

logger = logging.getLogger(__name__)

# (series field, anomaly type, metric name) checked against the baseline.
STATISTICAL_METRICS = (
    ("fantasy_points", AnomalyType.PERFORMANCE, "Fantasy Points"),
    ("snap_percentage", AnomalyType.USAGE, "Snap Percentage"),
    ("targets", AnomalyType.USAGE, "Target Share"),
)


@dataclass(frozen=True)
class Detection:
    """
    An anomaly plus what produced it.

    series names the metric series for statistical and trend detections so the
    same check can be re-run on fresh data.
    """

    anomaly: Anomaly
    detector: DetectorKind
    series: Optional[str] = None


@dataclass
class SubjectReport:
    """
    Outcome of one subject's detection pass.

    Fields:
    - detections: anomalies found, in detector order
    - failed_detectors: detectors whose model call failed (omitted from output)
    - insufficient_data: True when no baseline could be built
    """

    subject_id: str
    detections: List[Detection] = field(default_factory=list)
    failed_detectors: List[DetectorKind] = field(default_factory=list)
    insufficient_data: bool = False

    @property
    def anomalies(self) -> List[Anomaly]:
        return [d.anomaly for d in self.detections]


@dataclass
class AnomalyEngine:
    """
    Deterministic anomaly detection engine.

    Notes:
    - Construct one engine per process and share it; baselines are cached on it.
    - The pattern detector runs only with a reconstruction model, the injury
      detector only with a risk model.
    - Baselines are built once per subject and never refreshed automatically.
    """

    reconstruction_model: Optional[ReconstructionModel] = None
    risk_model: Optional[SequenceRiskModel] = None
    settings: AnomalyConfig = field(default_factory=lambda: config.anomaly)

    def __post_init__(self) -> None:
        self.baselines = BaselineStore(self.settings.baselines)
        self._mapper = SeverityMapper(self.settings.thresholds)
        self.statistical = StatisticalDetector(self._mapper, self.settings.statistical)
        self.trend = TrendDetector(self.settings.trend)
        self.market = MarketDetector(self._mapper, self.settings.market)
        self.pattern = (
            PatternDetector(self.reconstruction_model, self.settings.pattern)
            if self.reconstruction_model is not None
            else None
        )
        self.risk = (
            RiskDetector(self.risk_model, self._mapper, self.settings.risk)
            if self.risk_model is not None
            else None
        )

    def available_types(self) -> Set[AnomalyType]:
        types = {AnomalyType.PERFORMANCE, AnomalyType.USAGE, AnomalyType.MARKET}
        if self.risk is not None:
            types.add(AnomalyType.INJURY)
        return types

    def detect_subject(
        self, snapshot: SubjectSnapshot, detection_config: DetectionConfig
    ) -> SubjectReport:
        subject = snapshot.subject
        report = self.detect_performance(subject, snapshot.metrics, detection_config)

        if detection_config.is_enabled(AnomalyType.MARKET) and snapshot.market is not None:
            report.detections.extend(self.detect_market(subject, snapshot.market))

        if detection_config.is_enabled(AnomalyType.INJURY) and snapshot.health is not None:
            if self.risk is None:
                logger.debug("Injury detection enabled without a risk model; skipping %s", subject.id)
            else:
                try:
                    report.detections.extend(self.detect_injury_risk(subject, snapshot.health))
                except ModelInferenceError as exc:
                    logger.warning("Risk model failed for %s: %s", subject.id, exc)
                    report.failed_detectors.append(DetectorKind.INJURY_RISK)

        return report

    def detect_performance(
        self, subject: Subject, metrics: SubjectMetrics, detection_config: DetectionConfig
    ) -> SubjectReport:
        report = SubjectReport(subject_id=subject.id)
        perf_enabled = detection_config.is_enabled(AnomalyType.PERFORMANCE)
        usage_enabled = detection_config.is_enabled(AnomalyType.USAGE)
        if not (perf_enabled or usage_enabled):
            return report

        metrics = recent_window(metrics, detection_config.window_size_days)
        baseline = self.baselines.get_or_create(subject.id, metrics)

        if baseline is None:
            report.insufficient_data = True
        else:
            for series, anomaly_type, metric_name in STATISTICAL_METRICS:
                if not detection_config.is_enabled(anomaly_type):
                    continue
                index = TRACKED_METRICS.index(series)
                values = metrics.series(series)
                for anomaly in self.statistical.detect(
                    subject, values, baseline.mean[index], baseline.std[index], anomaly_type, metric_name
                ):
                    report.detections.append(Detection(anomaly, DetectorKind.STATISTICAL, series))

                trend = self.trend.detect_trend(values, subject, f"{metric_name} Trend")
                if trend is not None:
                    report.detections.append(Detection(trend, DetectorKind.TREND, series))

        if perf_enabled and self.pattern is not None:
            try:
                complex_anomaly = self.pattern.detect_complex(subject, metrics)
            except ModelInferenceError as exc:
                logger.warning("Reconstruction model failed for %s: %s", subject.id, exc)
                report.failed_detectors.append(DetectorKind.PATTERN)
            else:
                if complex_anomaly is not None:
                    report.detections.append(Detection(complex_anomaly, DetectorKind.PATTERN))

        return report

    def detect_market(self, subject: Subject, market: MarketData) -> List[Detection]:
        detections = []
        ownership = self.market.check_ownership(subject, market.ownership)
        if ownership is not None:
            detections.append(Detection(ownership, DetectorKind.OWNERSHIP))
        volume = self.market.check_trade_volume(subject, market.trade_volume)
        if volume is not None:
            detections.append(Detection(volume, DetectorKind.TRADE_VOLUME))
        return detections

    def detect_injury_risk(self, subject: Subject, health: HealthData) -> List[Detection]:
        if self.risk is None:
            return []
        anomaly = self.risk.detect_injury_risk(subject, health)
        return [Detection(anomaly, DetectorKind.INJURY_RISK)] if anomaly is not None else []

    def is_condition_resolved(
        self, detection: Detection, snapshot: SubjectSnapshot, detection_config: DetectionConfig
    ) -> Optional[bool]:
        """
        Re-run the check that produced a detection against fresh data.

        Returns True when the condition has fallen back below its resolution
        level, False while it still holds, and None when the check cannot run
        (missing data, missing model, or a model failure).
        """
        kind = detection.detector
        try:
            if kind in (DetectorKind.STATISTICAL, DetectorKind.TREND):
                return self._series_resolved(detection, snapshot, detection_config)
            if kind == DetectorKind.PATTERN:
                if self.pattern is None:
                    return None
                metrics = recent_window(snapshot.metrics, detection_config.window_size_days)
                return self.pattern.is_resolved(metrics)
            if kind == DetectorKind.OWNERSHIP:
                return None if snapshot.market is None else self.market.ownership_resolved(snapshot.market.ownership)
            if kind == DetectorKind.TRADE_VOLUME:
                return None if snapshot.market is None else self.market.trade_volume_resolved(snapshot.market.trade_volume)
            if kind == DetectorKind.INJURY_RISK:
                if self.risk is None or snapshot.health is None:
                    return None
                return self.risk.is_resolved(snapshot.health)
        except ModelInferenceError as exc:
            logger.warning("Could not re-check %s: %s", detection.anomaly.id, exc)
            return None
        return None

    def _series_resolved(
        self, detection: Detection, snapshot: SubjectSnapshot, detection_config: DetectionConfig
    ) -> Optional[bool]:
        if detection.series is None:
            return None
        metrics = recent_window(snapshot.metrics, detection_config.window_size_days)
        values = metrics.series(detection.series)

        if detection.detector == DetectorKind.TREND:
            details = detection.anomaly.details
            return self.trend.is_resolved(values, increasing=details.actual_value > details.expected_value)

        baseline = self.baselines.get(snapshot.subject.id)
        if baseline is None:
            return None
        index = TRACKED_METRICS.index(detection.series)
        return self.statistical.is_resolved(values, baseline.mean[index], baseline.std[index])
