"""
Configuration for local model inference.

All settings are deterministic and safe for offline use.
"""

from __future__ import annotations

import os

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """
    Configuration for the reconstruction and risk models.

    Notes:
    - *_path point to local state_dict files (no remote fetch).
    - Missing weight files leave the model seeded but untrained.
    - seed fixes initial weights so untrained runs stay reproducible.
    """

    autoencoder_path: Optional[str] = Field(None, description="Autoencoder state_dict file")
    risk_model_path: Optional[str] = Field(None, description="LSTM risk model state_dict file")
    input_dim: int = Field(25, ge=1)
    risk_features: int = Field(4, ge=1)
    lstm_hidden: int = Field(32, ge=1)
    seed: int = 7
    device: str = "cpu"
    weights_available: bool = False

    def model_post_init(self, __context: object) -> None:
        paths = [p for p in (self.autoencoder_path, self.risk_model_path) if p]
        self.weights_available = bool(paths) and all(Path(p).exists() for p in paths)


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Model toggles
USE_MODELS = _parse_bool(os.getenv("USE_MODELS"), True)
AUTOENCODER_PATH = os.getenv("AUTOENCODER_PATH")
RISK_MODEL_PATH = os.getenv("RISK_MODEL_PATH")


def default_model_config() -> ModelConfig:
    return ModelConfig(autoencoder_path=AUTOENCODER_PATH, risk_model_path=RISK_MODEL_PATH)
