"""
Alert lifecycle management.

Tracks every detected anomaly in an active store keyed by its deterministic id.
Repeat detections update the existing entry, a reconciliation pass resolves
alerts whose condition no longer holds, and a purge pass drops entries older
than the retention window whether or not they were resolved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from src.anomaly.engine import Detection
from src.anomaly.schema import Anomaly, DetectorKind

from .config import LifecycleConfig

logger = logging.getLogger("backend.alerts")


class AlertEvent(str, Enum):
    CREATED = "alert"
    UPDATED = "alert_updated"
    RESOLVED = "alert_resolved"
    PURGED = "alert_purged"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ActiveAlert:
    """
    Active-store entry.

    Fields:
    - anomaly: latest anomaly for this id (timestamp refreshed on update)
    - detector/series: what produced it, used to re-run the check
    - resolved: set once the triggering condition no longer holds
    """

    anomaly: Anomaly
    detector: DetectorKind
    series: Optional[str] = None
    resolved: bool = False
    first_seen: datetime = field(default_factory=_utcnow)
    resolved_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return self.anomaly.id

    def detection(self) -> Detection:
        return Detection(self.anomaly, self.detector, self.series)


AlertHandler = Callable[[ActiveAlert], None]


class AlertEventRegistry:
    """
    Callback registry for lifecycle events.

    Handlers run synchronously on the writer; a failing handler is logged and
    does not stop the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: Dict[AlertEvent, List[AlertHandler]] = {event: [] for event in AlertEvent}

    def subscribe(self, event: AlertEvent, handler: AlertHandler) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def emit(self, event: AlertEvent, alert: ActiveAlert) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(alert)
            except Exception:
                logger.exception("Handler for %s failed on %s", event.value, alert.id)


class ActiveAnomalyStore:
    """
    Thread-safe mapping from anomaly id to ActiveAlert.
    """

    def __init__(self) -> None:
        self._alerts: Dict[str, ActiveAlert] = {}
        self._lock = threading.RLock()

    def get(self, alert_id: str) -> Optional[ActiveAlert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def put(self, alert: ActiveAlert) -> None:
        with self._lock:
            self._alerts[alert.id] = alert

    def delete(self, alert_id: str) -> Optional[ActiveAlert]:
        with self._lock:
            return self._alerts.pop(alert_id, None)

    def values(self) -> List[ActiveAlert]:
        with self._lock:
            return list(self._alerts.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def __contains__(self, alert_id: object) -> bool:
        with self._lock:
            return alert_id in self._alerts


class AlertLifecycleManager:
    """
    Single writer for the active-anomaly store.

    Lifecycle rules:
    - record(): a new id (or a previously resolved one) creates an unresolved
      entry and emits CREATED; an unresolved id is updated in place and emits
      UPDATED.
    - reconcile(): runs a caller-supplied check per unresolved alert; True
      marks it resolved and emits RESOLVED, False or None leaves it untouched.
    - purge(): deletes every entry whose anomaly timestamp is older than the
      retention window, resolved or not, and emits PURGED.
    """

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        store: Optional[ActiveAnomalyStore] = None,
        events: Optional[AlertEventRegistry] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config or LifecycleConfig()
        self.store = store or ActiveAnomalyStore()
        self.events = events or AlertEventRegistry()
        self._clock = clock

    def record(self, detection: Detection) -> ActiveAlert:
        anomaly = detection.anomaly
        existing = self.store.get(anomaly.id)

        if existing is not None and not existing.resolved:
            existing.anomaly = anomaly
            existing.detector = detection.detector
            existing.series = detection.series
            self.events.emit(AlertEvent.UPDATED, existing)
            return existing

        alert = ActiveAlert(
            anomaly=anomaly,
            detector=detection.detector,
            series=detection.series,
            first_seen=self._clock(),
        )
        self.store.put(alert)
        logger.info("New %s alert %s (%s)", anomaly.severity.value, anomaly.id, anomaly.description)
        self.events.emit(AlertEvent.CREATED, alert)
        return alert

    def record_all(self, detections: Iterable[Detection]) -> List[ActiveAlert]:
        return [self.record(detection) for detection in detections]

    def reconcile(
        self,
        check: Callable[[ActiveAlert], Optional[bool]],
        skip_ids: Iterable[str] = (),
    ) -> List[ActiveAlert]:
        skip = set(skip_ids)
        resolved: List[ActiveAlert] = []

        for alert in self.store.values():
            if alert.resolved or alert.id in skip:
                continue
            if check(alert) is True:
                alert.resolved = True
                alert.resolved_at = self._clock()
                resolved.append(alert)
                logger.info("Alert resolved: %s", alert.id)
                self.events.emit(AlertEvent.RESOLVED, alert)

        return resolved

    def purge(self, now: Optional[datetime] = None) -> List[ActiveAlert]:
        now = now or self._clock()
        max_age = timedelta(days=self.config.retention_days)
        purged: List[ActiveAlert] = []

        for alert in self.store.values():
            if now - alert.anomaly.timestamp > max_age:
                self.store.delete(alert.id)
                purged.append(alert)
                self.events.emit(AlertEvent.PURGED, alert)

        if purged:
            logger.info("Purged %d alerts older than %d days", len(purged), self.config.retention_days)
        return purged

    def get(self, alert_id: str) -> Optional[ActiveAlert]:
        return self.store.get(alert_id)

    def active(self) -> List[ActiveAlert]:
        return [alert for alert in self.store.values() if not alert.resolved]

    def all(self) -> List[ActiveAlert]:
        return self.store.values()

    def __len__(self) -> int:
        return len(self.store)
