"""
Time-window trimming for metric series.

The engine only reads a bounded recent window of each subject's history.
Windows are anchored at the newest timestamp rather than wall-clock time so
that replayed or delayed feeds are trimmed consistently.
"""

import logging

import pandas as pd

from src.data.schema import METRIC_FIELDS, SubjectMetrics

logger = logging.getLogger(__name__)


def recent_window(metrics: SubjectMetrics, window_days: int) -> SubjectMetrics:
    """
    Keep only samples within window_days of the most recent timestamp.

    Args:
        metrics: Full metric history for a subject
        window_days: Window length in days

    Returns:
        A new SubjectMetrics restricted to the window. Metrics without
        timestamps are returned unchanged.
    """
    if not metrics.timestamps or window_days <= 0:
        return metrics

    index = pd.to_datetime(metrics.timestamps, utc=True)
    cutoff = index.max() - pd.Timedelta(days=window_days)
    mask = (index >= cutoff).tolist()
    if all(mask):
        return metrics

    logger.debug(
        "Trimmed %d samples older than %d days for subject %s",
        mask.count(False),
        window_days,
        metrics.subject_id,
    )

    update = {
        name: [value for value, keep in zip(metrics.series(name), mask) if keep]
        for name in METRIC_FIELDS
        if metrics.series(name)
    }
    update["timestamps"] = [ts for ts, keep in zip(metrics.timestamps, mask) if keep]
    return metrics.model_copy(update=update)
