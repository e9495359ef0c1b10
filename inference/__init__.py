"""
Model implementations for the anomaly engine.

Local-only PyTorch models behind the ReconstructionModel and SequenceRiskModel
protocols.
"""

from .autoencoder import TorchAutoencoder
from .config import ModelConfig, default_model_config
from .sequence import TorchSequenceRiskModel

__all__ = [
    "ModelConfig",
    "TorchAutoencoder",
    "TorchSequenceRiskModel",
    "default_model_config",
]
