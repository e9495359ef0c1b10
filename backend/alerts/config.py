"""
Configuration for anomaly correlation and the alert lifecycle.

All settings are deterministic and bounded.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class LifecycleConfig(BaseModel):
    """
    Correlation and retention configuration.

    Notes:
    - correlation_window_minutes: anomalies closer than this are related.
    - retention_days: active-store entries older than this are purged,
      resolved or not.
    - link_same_subject / link_same_team: correlation rules besides timing.
    """

    correlation_window_minutes: int = Field(60, ge=0)
    retention_days: int = Field(7, ge=1)
    link_same_subject: bool = True
    link_same_team: bool = True
