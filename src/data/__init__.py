"""
Data module: provider boundary for the anomaly engine.

Defines the input schemas handed to the engine, the provider protocols that
produce them, and time-window trimming of metric series.
"""

from src.data.providers import (
    HealthDataProvider,
    JSONSubjectSource,
    MarketDataProvider,
    MetricsProvider,
)
from src.data.schema import (
    METRIC_FIELDS,
    HealthData,
    MarketData,
    PracticeStatus,
    Subject,
    SubjectMetrics,
    SubjectSnapshot,
)
from src.data.windowing import recent_window

__all__ = [
    "METRIC_FIELDS",
    "HealthData",
    "HealthDataProvider",
    "JSONSubjectSource",
    "MarketData",
    "MarketDataProvider",
    "MetricsProvider",
    "PracticeStatus",
    "Subject",
    "SubjectMetrics",
    "SubjectSnapshot",
    "recent_window",
]
