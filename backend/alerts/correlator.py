"""
Anomaly correlator.

Links related anomalies within one batch. Two anomalies are related when they
share a subject, share a team, or were detected within the correlation window.
Links are always added in both directions.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from src.anomaly.schema import Anomaly

from .config import LifecycleConfig


class Correlator:
    """
    Deterministic pairwise correlator.

    Anomalies are immutable, so correlate() returns new objects with
    related_anomaly_ids extended; input order is preserved.
    """

    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        self.config = config or LifecycleConfig()

    def correlate(self, anomalies: Sequence[Anomaly]) -> List[Anomaly]:
        links: Dict[int, List[str]] = {i: list(a.related_anomaly_ids) for i, a in enumerate(anomalies)}

        for i in range(len(anomalies)):
            for j in range(i + 1, len(anomalies)):
                first, second = anomalies[i], anomalies[j]
                if first.id == second.id or not self.are_related(first, second):
                    continue
                if second.id not in links[i]:
                    links[i].append(second.id)
                if first.id not in links[j]:
                    links[j].append(first.id)

        return [
            anomaly if links[i] == anomaly.related_anomaly_ids
            else anomaly.model_copy(update={"related_anomaly_ids": links[i]})
            for i, anomaly in enumerate(anomalies)
        ]

    def are_related(self, first: Anomaly, second: Anomaly) -> bool:
        if self.config.link_same_subject and first.subject_id and first.subject_id == second.subject_id:
            return True
        if self.config.link_same_team and first.team_id and first.team_id == second.team_id:
            return True

        window = timedelta(minutes=self.config.correlation_window_minutes)
        return abs(first.timestamp - second.timestamp) < window
