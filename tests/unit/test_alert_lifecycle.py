"""
Unit tests for the alert lifecycle manager and active-anomaly store.
"""

import json
from datetime import timedelta

import pytest

from backend.alerts import ActiveAnomalyStore, AlertEvent, AlertLifecycleManager, LifecycleConfig
from src.anomaly.engine import Detection
from src.anomaly.schema import Anomaly, AnomalySeverity, DetectorKind


@pytest.fixture
def manager(anomaly_factory):
    now = anomaly_factory().timestamp
    return AlertLifecycleManager(LifecycleConfig(), clock=lambda: now)


@pytest.fixture
def events(manager):
    seen = []
    for event in AlertEvent:
        manager.events.subscribe(event, lambda alert, event=event: seen.append((event, alert.id)))
    return seen


def _detection(anomaly, kind=DetectorKind.STATISTICAL, series="fantasy_points"):
    return Detection(anomaly, kind, series)


def test_new_detection_creates_unresolved_alert(manager, events, anomaly_factory):
    alert = manager.record(_detection(anomaly_factory()))

    assert not alert.resolved
    assert len(manager) == 1
    assert manager.active() == [alert]
    assert events == [(AlertEvent.CREATED, "performance_p1_fantasy_points")]


def test_repeat_detection_updates_instead_of_duplicating(manager, events, anomaly_factory):
    first = anomaly_factory()
    later = anomaly_factory(timestamp=first.timestamp + timedelta(minutes=15), severity=AnomalySeverity.HIGH)

    manager.record(_detection(first))
    alert = manager.record(_detection(later))

    assert len(manager) == 1
    assert alert.anomaly.severity == AnomalySeverity.HIGH
    assert alert.anomaly.timestamp == later.timestamp
    assert [e for e, _ in events] == [AlertEvent.CREATED, AlertEvent.UPDATED]


def test_reconcile_resolves_when_check_passes(manager, events, anomaly_factory):
    manager.record(_detection(anomaly_factory("a", subject_id="p1")))
    manager.record(_detection(anomaly_factory("b", subject_id="p2")))
    manager.record(_detection(anomaly_factory("c", subject_id="p3")))

    outcomes = {"a": True, "b": False, "c": None}
    resolved = manager.reconcile(lambda alert: outcomes[alert.id])

    assert [a.id for a in resolved] == ["a"]
    assert manager.get("a").resolved
    assert manager.get("a").resolved_at is not None
    assert not manager.get("b").resolved
    assert not manager.get("c").resolved
    assert (AlertEvent.RESOLVED, "a") in events


def test_reconcile_skips_ids_and_resolved_alerts(manager, anomaly_factory):
    manager.record(_detection(anomaly_factory("a")))
    manager.record(_detection(anomaly_factory("b")))
    checked = []

    def check(alert):
        checked.append(alert.id)
        return True

    manager.reconcile(check, skip_ids={"b"})
    manager.reconcile(check)

    assert checked == ["a", "b"]


def test_resolved_alert_is_recreated_on_new_detection(manager, events, anomaly_factory):
    manager.record(_detection(anomaly_factory()))
    manager.reconcile(lambda alert: True)

    alert = manager.record(_detection(anomaly_factory()))

    assert not alert.resolved
    assert len(manager) == 1
    assert [e for e, _ in events] == [AlertEvent.CREATED, AlertEvent.RESOLVED, AlertEvent.CREATED]


def test_purge_ignores_resolved_flag(manager, events, anomaly_factory):
    now = anomaly_factory().timestamp
    old_active = anomaly_factory("old_active", timestamp=now - timedelta(days=8))
    old_resolved = anomaly_factory("old_resolved", timestamp=now - timedelta(days=7, seconds=1))
    fresh = anomaly_factory("fresh", timestamp=now - timedelta(days=6))
    boundary = anomaly_factory("boundary", timestamp=now - timedelta(days=7))

    for anomaly in (old_active, old_resolved, fresh, boundary):
        manager.record(_detection(anomaly))
    manager.reconcile(lambda alert: alert.id == "old_resolved")

    purged = manager.purge(now)

    assert sorted(a.id for a in purged) == ["old_active", "old_resolved"]
    assert "old_active" not in manager.store
    assert "fresh" in manager.store
    assert "boundary" in manager.store
    assert (AlertEvent.PURGED, "old_active") in events


def test_failing_handler_does_not_block_others(manager, anomaly_factory):
    seen = []

    def broken(alert):
        raise RuntimeError("handler bug")

    manager.events.subscribe(AlertEvent.CREATED, broken)
    manager.events.subscribe(AlertEvent.CREATED, lambda alert: seen.append(alert.id))

    manager.record(_detection(anomaly_factory()))
    assert seen == ["performance_p1_fantasy_points"]


def test_unsubscribe(manager, anomaly_factory):
    seen = []
    unsubscribe = manager.events.subscribe(AlertEvent.CREATED, lambda alert: seen.append(alert.id))
    unsubscribe()
    manager.record(_detection(anomaly_factory()))
    assert seen == []


def test_alert_rebuilds_its_detection(manager, anomaly_factory):
    anomaly = anomaly_factory()
    alert = manager.record(_detection(anomaly, DetectorKind.TREND, "targets"))
    assert alert.detection() == Detection(anomaly, DetectorKind.TREND, "targets")


def test_store_operations(anomaly_factory):
    store = ActiveAnomalyStore()
    manager = AlertLifecycleManager(store=store)
    manager.record(_detection(anomaly_factory()))

    assert "performance_p1_fantasy_points" in store
    assert store.delete("performance_p1_fantasy_points") is not None
    assert store.delete("performance_p1_fantasy_points") is None
    assert len(store) == 0


def test_purge_handles_offset_less_timestamps(manager, anomaly_factory):
    now = anomaly_factory().timestamp
    payload = anomaly_factory("stale").to_dict()
    payload["timestamp"] = "2025-08-01T12:00:00"
    manager.record(_detection(Anomaly.from_json(json.dumps(payload))))

    assert [a.id for a in manager.purge(now)] == ["stale"]
