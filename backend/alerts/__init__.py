"""
Anomaly correlation and alert lifecycle exports.
"""

from .config import LifecycleConfig
from .correlator import Correlator
from .lifecycle import (
    ActiveAlert,
    ActiveAnomalyStore,
    AlertEvent,
    AlertEventRegistry,
    AlertLifecycleManager,
)

__all__ = [
    "ActiveAlert",
    "ActiveAnomalyStore",
    "AlertEvent",
    "AlertEventRegistry",
    "AlertLifecycleManager",
    "Correlator",
    "LifecycleConfig",
]
