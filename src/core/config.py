"""
Application configuration for the fantasy anomaly monitor.

Provides environment-aware settings with conservative defaults. All detector
thresholds are configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SeverityThresholds(BaseModel):
	"""
	Ordered thresholds mapping a deviation magnitude to a severity label.

	A value at or above a threshold receives that severity.
	"""

	low: float = Field(..., ge=0.0)
	medium: float = Field(..., ge=0.0)
	high: float = Field(..., ge=0.0)
	critical: float = Field(..., ge=0.0)

	@model_validator(mode="after")
	def _check_order(self) -> "SeverityThresholds":
		if not (self.low <= self.medium <= self.high <= self.critical):
			raise ValueError("severity thresholds must be non-decreasing")
		return self


class ThresholdTables(BaseModel):
	"""
	Per-type severity tables.

	Notes:
	- performance: z-score units.
	- injury: model risk score in [0, 1].
	- usage: fractional share units.
	- market: ownership rate-of-change units.
	- zscore_overrides: anomaly type -> table name used when scoring z-scores.
	  Types without an override are scored against the performance table.
	"""

	performance: SeverityThresholds = SeverityThresholds(low=1.5, medium=2.5, high=3.5, critical=5.0)
	injury: SeverityThresholds = SeverityThresholds(low=0.6, medium=0.7, high=0.8, critical=0.9)
	usage: SeverityThresholds = SeverityThresholds(low=0.3, medium=0.5, high=0.7, critical=0.9)
	market: SeverityThresholds = SeverityThresholds(low=2.0, medium=3.0, high=4.0, critical=5.0)
	zscore_overrides: Dict[str, str] = Field(default_factory=dict)

	def table(self, name: str) -> SeverityThresholds:
		if name not in {"performance", "injury", "usage", "market"}:
			raise ValueError(f"Unknown severity table: {name}")
		return getattr(self, name)

	def zscore_table(self, anomaly_type: str) -> SeverityThresholds:
		return self.table(self.zscore_overrides.get(anomaly_type, "performance"))


class BaselineConfig(BaseModel):
	"""
	Configuration for baseline estimation.

	Notes:
	- min_points: samples required before a baseline exists.
	- std_floor: substituted when the observed std is degenerate.
	- seasonal_period: period of the per-offset seasonal mean (17 game weeks).
	"""

	min_points: int = Field(3, ge=1)
	std_floor: float = Field(1.0, gt=0.0)
	seasonal_period: int = Field(17, ge=1)


class StatisticalConfig(BaseModel):
	min_points: int = Field(3, ge=1)
	confidence_scale: float = Field(5.0, gt=0.0)
	resolve_zscore: float = Field(1.0, ge=0.0, description="Alert resolves below this z-score")
	projection_weights: Dict[str, float] = Field(default_factory=lambda: {"performance": 1.0})
	default_projection_weight: float = 0.5


class TrendConfig(BaseModel):
	min_points: int = Field(5, ge=3)
	window: int = Field(3, ge=2)
	min_change_rate: float = Field(0.3, ge=0.0)
	medium_change_rate: float = Field(0.5, ge=0.0)
	confidence: float = Field(0.7, ge=0.0, le=1.0)
	projection_scale: float = 2.0
	resolve_change_rate: float = Field(0.15, ge=0.0)


class PatternConfig(BaseModel):
	recent_samples: int = Field(5, ge=1)
	vector_length: int = Field(25, ge=1)
	error_threshold: float = Field(0.3, ge=0.0)
	high_error_threshold: float = Field(0.5, ge=0.0)
	expected_error: float = 0.1
	projection_scale: float = 3.0
	resolve_error: float = Field(0.2, ge=0.0)


class MarketConfig(BaseModel):
	"""
	Market detector configuration.

	Notes:
	- zero_base_rate: rate reported when ownership rises from zero.
	- volume_window: trailing samples (latest included) averaged for the spike check;
	  the sum is always divided by the full window.
	"""

	zero_base_rate: float = 10.0
	ownership_confidence: float = Field(0.85, ge=0.0, le=1.0)
	volume_window: int = Field(7, ge=1)
	volume_spike_multiple: float = Field(3.0, gt=0.0)
	volume_confidence: float = Field(0.8, ge=0.0, le=1.0)
	volume_resolve_multiple: float = Field(2.0, gt=0.0)


class RiskConfig(BaseModel):
	expected_risk: float = 0.3
	projection_scale: float = 5.0
	short_rest_days: float = 4.0
	rest_normalizer_days: float = Field(7.0, gt=0.0)


class AnomalyConfig(BaseModel):
	"""
	Anomaly detection configuration.
	"""

	thresholds: ThresholdTables = ThresholdTables()
	baselines: BaselineConfig = BaselineConfig()
	statistical: StatisticalConfig = StatisticalConfig()
	trend: TrendConfig = TrendConfig()
	pattern: PatternConfig = PatternConfig()
	market: MarketConfig = MarketConfig()
	risk: RiskConfig = RiskConfig()


class MonitorSettings(BaseModel):
	"""
	Defaults for the monitoring loop's DetectionConfig.

	Notes:
	- max_concurrency bounds per-subject fan-out within one cycle.
	- queue_size bounds the batch output channel (producers block when full).
	"""

	sensitivity: str = Field("medium", description="low, medium or high")
	window_size_days: int = Field(28, ge=1)
	update_frequency_minutes: int = Field(15, ge=1)
	enabled_types: List[str] = Field(
		default_factory=lambda: ["performance", "usage", "market", "injury"]
	)
	max_concurrency: int = Field(4, ge=1)
	queue_size: int = Field(16, ge=1)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="FANTASY_ANOMALY_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	anomaly: AnomalyConfig = AnomalyConfig()
	monitor: MonitorSettings = MonitorSettings()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
