"""
Monitoring loop.

Each cycle fetches fresh data for every configured subject, runs the engine
with bounded concurrency, correlates the whole batch, updates the alert
lifecycle and publishes the batch to every sink. Cycles never overlap; a
cycle that overruns its cadence causes the missed ticks to be skipped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from src.anomaly.engine import AnomalyEngine, SubjectReport
from src.anomaly.schema import DETECTABLE_TYPES, Anomaly, AnomalyType, DetectionConfig, Sensitivity
from src.core.config import MonitorSettings, config
from src.core.exceptions import ConfigurationError
from src.data.providers import HealthDataProvider, MarketDataProvider, MetricsProvider
from src.data.schema import Subject, SubjectSnapshot

from backend.alerts import ActiveAlert, AlertLifecycleManager, Correlator
from backend.sinks import AlertSink

logger = logging.getLogger("backend.monitor")


def default_detection_config(settings: Optional[MonitorSettings] = None) -> DetectionConfig:
    """
    Build the DetectionConfig described by the monitor settings section.

    Raises:
        ConfigurationError: unknown sensitivity or anomaly type name
    """
    settings = settings or config.monitor
    try:
        return DetectionConfig(
            sensitivity=Sensitivity(settings.sensitivity.lower()),
            window_size_days=settings.window_size_days,
            update_frequency_minutes=settings.update_frequency_minutes,
            enabled_types={AnomalyType(t.lower()) for t in settings.enabled_types},
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid monitor settings: {e}") from e


class CycleReport(BaseModel):
    """
    Telemetry for one monitoring cycle.

    Fields:
    - subjects_failed: subjects whose fetch or detection raised
    - detector_failures: model-backed detectors omitted after an inference error
    - skipped_ticks: cadence ticks dropped since the previous cycle
    """

    cycle: int
    started_at: datetime
    sensitivity: Sensitivity
    duration_seconds: float = 0.0
    subjects_total: int = 0
    subjects_processed: int = 0
    subjects_failed: int = 0
    insufficient_data: int = 0
    detector_failures: int = 0
    anomalies: int = 0
    resolved: int = 0
    purged: int = 0
    skipped_ticks: int = 0
    failed_subject_ids: List[str] = Field(default_factory=list)


class MonitoringLoop:
    """
    Cadence-driven orchestrator around one shared AnomalyEngine.

    Notes:
    - Per-subject work fans out up to max_concurrency; detection runs in worker
      threads so model inference does not block the event loop.
    - Only this loop writes to the lifecycle store.
    - A cancelled loop lets the in-flight cycle finish and publish first.
    - clock drives the cadence; it defaults to the event loop clock.
    """

    def __init__(
        self,
        engine: AnomalyEngine,
        subjects: Sequence[Subject],
        metrics_provider: MetricsProvider,
        market_provider: Optional[MarketDataProvider] = None,
        health_provider: Optional[HealthDataProvider] = None,
        sinks: Sequence[AlertSink] = (),
        lifecycle: Optional[AlertLifecycleManager] = None,
        correlator: Optional[Correlator] = None,
        max_concurrency: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.engine = engine
        self.subjects = list(subjects)
        self.metrics_provider = metrics_provider
        self.market_provider = market_provider
        self.health_provider = health_provider
        self.sinks = list(sinks)
        self.lifecycle = lifecycle or AlertLifecycleManager()
        self.correlator = correlator or Correlator(self.lifecycle.config)
        self.max_concurrency = max_concurrency or config.monitor.max_concurrency
        self.clock = clock

        self.reports: Deque[CycleReport] = deque(maxlen=100)
        self.totals: Dict[str, int] = {
            "cycles": 0,
            "anomalies": 0,
            "subjects_failed": 0,
            "detector_failures": 0,
            "resolved": 0,
            "purged": 0,
            "skipped_ticks": 0,
        }

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._pending_skips = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, detection_config: Optional[DetectionConfig] = None, max_cycles: Optional[int] = None) -> None:
        """
        Run cycles until stopped, cancelled, or max_cycles is reached.

        Raises:
            ConfigurationError: invalid detection config, before any cycle runs
        """
        cfg = detection_config or default_detection_config()
        available = self.engine.available_types()
        cfg.validate_for_loop(available)
        unavailable = (cfg.enabled_types & DETECTABLE_TYPES) - available
        if unavailable:
            logger.warning(
                "No detector available for %s (model not loaded); these types are skipped",
                ",".join(sorted(t.value for t in unavailable)),
            )

        clock = self.clock or asyncio.get_running_loop().time
        interval = cfg.update_frequency_minutes * 60.0
        self._stop_event = asyncio.Event()
        self._running = True
        next_tick = clock()
        completed = 0

        logger.info(
            "Monitoring %d subjects every %d min (sensitivity=%s, types=%s)",
            len(self.subjects),
            cfg.update_frequency_minutes,
            cfg.sensitivity.value,
            ",".join(sorted(t.value for t in cfg.enabled_types)),
        )

        try:
            while self._running:
                cycle = asyncio.ensure_future(self.run_cycle(cfg))
                try:
                    await asyncio.shield(cycle)
                except asyncio.CancelledError:
                    logger.info("Cancellation requested; finishing in-flight cycle")
                    await cycle
                    raise

                completed += 1
                if max_cycles is not None and completed >= max_cycles:
                    break

                next_tick += interval
                now = clock()
                if now >= next_tick:
                    missed = int((now - next_tick) // interval) + 1
                    next_tick += missed * interval
                    self._pending_skips += missed
                    self.totals["skipped_ticks"] += missed
                    logger.warning("Cycle overran its cadence; skipping %d tick(s)", missed)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=max(next_tick - clock(), 0.0))
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Monitoring loop stopped after %d cycle(s)", completed)

    def start(self, detection_config: Optional[DetectionConfig] = None) -> "asyncio.Task[None]":
        if self._task is not None and not self._task.done():
            logger.warning("Monitoring loop already running")
            return self._task
        self._task = asyncio.create_task(self.run(detection_config))
        return self._task

    async def stop(self) -> None:
        """Stop after the current cycle and wait for the loop to exit."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_cycle(self, detection_config: DetectionConfig) -> Tuple[List[Anomaly], CycleReport]:
        """
        Run one complete detection cycle and publish its batch.

        Returns:
            The correlated batch (ordered by subject, then detector) and the
            cycle's telemetry.
        """
        started = time.monotonic()
        report = CycleReport(
            cycle=self.totals["cycles"] + 1,
            started_at=datetime.now(timezone.utc),
            sensitivity=detection_config.sensitivity,
            subjects_total=len(self.subjects),
            skipped_ticks=self._pending_skips,
        )
        self._pending_skips = 0

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *(self._process_subject(subject, detection_config, semaphore) for subject in self.subjects)
        )

        detections = []
        snapshots: Dict[str, SubjectSnapshot] = {}
        for subject, result in zip(self.subjects, results):
            if result is None:
                report.subjects_failed += 1
                report.failed_subject_ids.append(subject.id)
                continue
            snapshot, subject_report = result
            snapshots[subject.id] = snapshot
            report.subjects_processed += 1
            report.detector_failures += len(subject_report.failed_detectors)
            if subject_report.insufficient_data:
                report.insufficient_data += 1
            detections.extend(subject_report.detections)

        batch = self.correlator.correlate([d.anomaly for d in detections])
        for detection, anomaly in zip(detections, batch):
            self.lifecycle.record(replace(detection, anomaly=anomaly))

        def check(alert: ActiveAlert) -> Optional[bool]:
            snapshot = snapshots.get(alert.anomaly.subject_id or "")
            if snapshot is None:
                return None
            return self.engine.is_condition_resolved(alert.detection(), snapshot, detection_config)

        report.resolved = len(self.lifecycle.reconcile(check, skip_ids={a.id for a in batch}))
        report.purged = len(self.lifecycle.purge())
        report.anomalies = len(batch)

        await self._publish(batch)

        report.duration_seconds = time.monotonic() - started
        self._record(report)
        return batch, report

    async def _process_subject(
        self, subject: Subject, detection_config: DetectionConfig, semaphore: asyncio.Semaphore
    ) -> Optional[Tuple[SubjectSnapshot, SubjectReport]]:
        async with semaphore:
            try:
                snapshot = await self._fetch(subject, detection_config)
                subject_report = await asyncio.to_thread(self.engine.detect_subject, snapshot, detection_config)
            except Exception:
                logger.exception("Detection failed for subject %s", subject.id)
                return None
        return snapshot, subject_report

    async def _fetch(self, subject: Subject, detection_config: DetectionConfig) -> SubjectSnapshot:
        metrics = await self.metrics_provider.get_metrics(subject.id)

        market = None
        if self.market_provider is not None and detection_config.is_enabled(AnomalyType.MARKET):
            market = await self.market_provider.get_market(subject.id)

        health = None
        if (
            self.health_provider is not None
            and self.engine.risk is not None
            and detection_config.is_enabled(AnomalyType.INJURY)
        ):
            health = await self.health_provider.get_health(subject.id)

        return SubjectSnapshot(subject=subject, metrics=metrics, market=market, health=health)

    async def _publish(self, batch: List[Anomaly]) -> None:
        for sink in self.sinks:
            try:
                await sink.publish(batch)
            except Exception:
                logger.exception("Sink %s failed to publish %d anomalies", type(sink).__name__, len(batch))

    def _record(self, report: CycleReport) -> None:
        self.reports.append(report)
        self.totals["cycles"] += 1
        self.totals["anomalies"] += report.anomalies
        self.totals["subjects_failed"] += report.subjects_failed
        self.totals["detector_failures"] += report.detector_failures
        self.totals["resolved"] += report.resolved
        self.totals["purged"] += report.purged

        logger.info(
            "Cycle %d: %d anomalies, %d/%d subjects ok, %d failed, %d detector failures, "
            "%d resolved, %d purged (%.2fs)",
            report.cycle,
            report.anomalies,
            report.subjects_processed,
            report.subjects_total,
            report.subjects_failed,
            report.detector_failures,
            report.resolved,
            report.purged,
            report.duration_seconds,
        )
