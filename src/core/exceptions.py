"""
Custom exceptions for the fantasy anomaly monitor.

These exceptions provide clear error semantics across the system.
Use them to distinguish between data issues, model problems, provider
outages, and configuration errors.
"""


class AnomalyDetectionError(Exception):
    """Base exception for anomaly detection failures."""
    pass


class InsufficientDataError(AnomalyDetectionError):
    """Raised when a series has fewer samples than a computation requires."""
    pass


class ModelInferenceError(AnomalyDetectionError):
    """Raised when a reconstruction or risk model call fails or returns invalid output."""
    pass


class ProviderFetchError(AnomalyDetectionError):
    """Raised when a metrics, market, or health provider call fails for a subject."""
    pass


class DataValidationError(AnomalyDetectionError):
    """Raised when provider data fails validation."""
    pass


class ConfigurationError(AnomalyDetectionError):
    """Raised when configuration is invalid or missing."""
    pass
