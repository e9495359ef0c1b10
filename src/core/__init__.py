"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    AnomalyDetectionError,
    ConfigurationError,
    DataValidationError,
    InsufficientDataError,
    ModelInferenceError,
    ProviderFetchError,
)

__all__ = [
    "Config",
    "config",
    "AnomalyDetectionError",
    "ConfigurationError",
    "DataValidationError",
    "InsufficientDataError",
    "ModelInferenceError",
    "ProviderFetchError",
]
