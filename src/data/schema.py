"""
Input schemas for the anomaly engine's provider boundary.

Metric, market, and health data are owned by external providers and passed
to the engine by value. The engine reads these objects and never mutates them.

Design rationale:
- Parallel arrays (one sample per timestamp) as delivered by stat feeds
- All timestamps in UTC for consistent windowing
- Validation at construction so detectors can trust array lengths
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


METRIC_FIELDS = (
    "fantasy_points",
    "snap_percentage",
    "targets",
    "touches",
    "red_zone_usage",
    "efficiency",
)


class Subject(BaseModel):
    """
    A monitored entity (e.g. a player).

    Attributes:
        id: Opaque subject identifier
        name: Display name (optional)
        team_id: Team identifier used for correlation (optional)
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    team_id: Optional[str] = None


class PracticeStatus(str, Enum):
    """Practice participation levels from injury reports."""

    FULL = "full"
    LIMITED = "limited"
    NONE = "none"


class SubjectMetrics(BaseModel):
    """
    Recent metric series for one subject, oldest sample first.

    Attributes:
        subject_id: Subject these series belong to
        fantasy_points: Fantasy points per game
        snap_percentage: Share of offensive snaps played
        targets: Target share
        touches: Touches per game
        red_zone_usage: Red-zone opportunities per game
        efficiency: Points per touch
        timestamps: Sample timestamps, parallel to every non-empty series

    Notes:
        - timestamps may be empty, in which case no time windowing applies
        - a non-empty series must have exactly one value per timestamp
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    fantasy_points: List[float] = Field(default_factory=list)
    snap_percentage: List[float] = Field(default_factory=list)
    targets: List[float] = Field(default_factory=list)
    touches: List[float] = Field(default_factory=list)
    red_zone_usage: List[float] = Field(default_factory=list)
    efficiency: List[float] = Field(default_factory=list)
    timestamps: List[datetime] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_parallel(self) -> "SubjectMetrics":
        if not self.timestamps:
            return self
        expected = len(self.timestamps)
        for name in METRIC_FIELDS:
            values = getattr(self, name)
            if values and len(values) != expected:
                raise ValueError(
                    f"{name} has {len(values)} samples but {expected} timestamps were given"
                )
        if any(later < earlier for earlier, later in zip(self.timestamps, self.timestamps[1:])):
            raise ValueError("timestamps must be in ascending order")
        return self

    def series(self, name: str) -> List[float]:
        if name not in METRIC_FIELDS:
            raise KeyError(f"Unknown metric series: {name}")
        return getattr(self, name)


class MarketData(BaseModel):
    """
    Ownership and trade activity samples for one subject.

    ownership is expressed in percentage points; trade_volume in trades per period.
    """

    model_config = ConfigDict(frozen=True)

    ownership: List[float] = Field(default_factory=list)
    trade_volume: List[float] = Field(default_factory=list)
    sentiment: List[float] = Field(default_factory=list)
    timestamps: List[datetime] = Field(default_factory=list)


class HealthData(BaseModel):
    """
    Practice and workload information feeding the injury-risk model.
    """

    model_config = ConfigDict(frozen=True)

    practice_participation: List[PracticeStatus] = Field(default_factory=list)
    injury_reports: List[str] = Field(default_factory=list)
    workload: List[float] = Field(default_factory=list)
    days_rest: float = Field(7.0, ge=0.0)

    @field_validator("practice_participation", mode="before")
    @classmethod
    def _lower_status(cls, value):
        if isinstance(value, list):
            return [v.lower() if isinstance(v, str) else v for v in value]
        return value


class SubjectSnapshot(BaseModel):
    """
    Everything fetched for one subject in one monitoring cycle.

    market and health are None when their anomaly types are disabled.
    """

    model_config = ConfigDict(frozen=True)

    subject: Subject
    metrics: SubjectMetrics
    market: Optional[MarketData] = None
    health: Optional[HealthData] = None
