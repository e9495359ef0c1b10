"""
Unit tests for the JSON-file subject source.
"""

import asyncio

import pytest

from src.core.exceptions import DataValidationError, ProviderFetchError
from src.data.providers import HealthDataProvider, JSONSubjectSource, MarketDataProvider, MetricsProvider
from src.data.schema import PracticeStatus


SUBJECTS = [
    {"id": "p1", "name": "Star Receiver", "team_id": "KC"},
    {"id": "p2"},
]

DOCUMENT = {
    "metrics": {
        "fantasy_points": [12.1, 9.4, 18.0],
        "targets": [0.2, 0.18, 0.25],
        "timestamps": ["2025-09-07T17:00:00Z", "2025-09-14T17:00:00Z", "2025-09-21T17:00:00Z"],
    },
    "market": {"ownership": [41.0, 43.5], "trade_volume": [120, 135]},
    "health": {
        "practice_participation": ["Full", "limited"],
        "injury_reports": ["hamstring"],
        "workload": [62, 58],
        "days_rest": 6,
    },
}


@pytest.fixture
def source(write_subject_dir):
    return JSONSubjectSource(write_subject_dir(SUBJECTS, {"p1": DOCUMENT, "p2": {"metrics": {}}}))


def test_implements_all_provider_protocols(source):
    assert isinstance(source, MetricsProvider)
    assert isinstance(source, MarketDataProvider)
    assert isinstance(source, HealthDataProvider)


def test_subjects(source):
    subjects = source.subjects()
    assert [s.id for s in subjects] == ["p1", "p2"]
    assert subjects[0].team_id == "KC"
    assert subjects[1].name is None


@pytest.mark.asyncio
async def test_reads_each_section(source):
    metrics = await source.get_metrics("p1")
    market = await source.get_market("p1")
    health = await source.get_health("p1")

    assert metrics.subject_id == "p1"
    assert metrics.fantasy_points == [12.1, 9.4, 18.0]
    assert metrics.timestamps[0].tzinfo is not None
    assert market.trade_volume == [120.0, 135.0]
    assert health.practice_participation == [PracticeStatus.FULL, PracticeStatus.LIMITED]
    assert health.days_rest == 6


@pytest.mark.asyncio
async def test_missing_sections_default_to_empty(source):
    market = await source.get_market("p2")
    health = await source.get_health("p2")
    assert market.ownership == []
    assert health.days_rest == 7.0


@pytest.mark.asyncio
async def test_missing_subject_file_is_fetch_error(source):
    with pytest.raises(ProviderFetchError):
        await source.get_metrics("p9")


@pytest.mark.asyncio
async def test_invalid_payload_is_validation_error(write_subject_dir):
    bad = {"metrics": {"fantasy_points": [1.0], "timestamps": ["2025-09-07T17:00:00Z", "2025-09-14T17:00:00Z"]}}
    source = JSONSubjectSource(write_subject_dir(SUBJECTS, {"p1": bad}))
    with pytest.raises(DataValidationError):
        await source.get_metrics("p1")


@pytest.mark.asyncio
async def test_malformed_json_is_validation_error(write_subject_dir):
    root = write_subject_dir(SUBJECTS, {})
    (root / "p1.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(DataValidationError):
        await JSONSubjectSource(root).get_metrics("p1")


def test_byte_order_mark_is_ignored(write_subject_dir):
    root = write_subject_dir(SUBJECTS, {})
    (root / "subjects.json").write_text('\ufeff[{"id": "p1"}]', encoding="utf-8")
    assert [s.id for s in JSONSubjectSource(root).subjects()] == ["p1"]


def test_subject_list_must_be_array(write_subject_dir):
    root = write_subject_dir({"id": "p1"}, {})
    with pytest.raises(DataValidationError):
        JSONSubjectSource(root).subjects()


def test_missing_directory(tmp_path):
    with pytest.raises(ProviderFetchError):
        JSONSubjectSource(tmp_path / "missing")


@pytest.mark.asyncio
async def test_file_reads_run_off_the_event_loop(source, monkeypatch):
    real_to_thread = asyncio.to_thread
    offloaded = []

    async def recording_to_thread(func, *args, **kwargs):
        offloaded.append((func.__name__, args))
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

    await source.get_metrics("p1")
    await source.get_market("p1")
    await source.get_health("p1")

    assert offloaded == [
        ("_section", ("p1", "metrics")),
        ("_section", ("p1", "market")),
        ("_section", ("p1", "health")),
    ]
