"""
Dense autoencoder implementing ReconstructionModel.

Architecture: 25 -> 16 -> 8 -> 4 (encoder), 4 -> 8 -> 16 -> 25 (decoder),
ReLU hidden activations and a sigmoid output layer.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import torch
from torch import nn

from src.core.exceptions import ModelInferenceError

from .config import ModelConfig

logger = logging.getLogger("inference")


class AutoencoderNetwork(nn.Module):
    def __init__(self, input_dim: int = 25) -> None:
        super().__init__()
        self.encoder = nn.Sequential(
            nn.Linear(input_dim, 16),
            nn.ReLU(),
            nn.Linear(16, 8),
            nn.ReLU(),
            nn.Linear(8, 4),
            nn.ReLU(),
        )
        self.decoder = nn.Sequential(
            nn.Linear(4, 8),
            nn.ReLU(),
            nn.Linear(8, 16),
            nn.ReLU(),
            nn.Linear(16, input_dim),
            nn.Sigmoid(),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.decoder(self.encoder(x))


@dataclass
class TorchAutoencoder:
    """
    Local autoencoder wrapper.

    Loads weights lazily on first use; inference runs under no_grad in eval mode.
    """

    config: ModelConfig
    _network: Optional[AutoencoderNetwork] = None

    def load(self) -> None:
        if self._network is not None:
            return
        torch.manual_seed(self.config.seed)
        network = AutoencoderNetwork(self.config.input_dim)

        path = self.config.autoencoder_path
        if path and Path(path).exists():
            logger.info("Loading autoencoder weights from %s", path)
            network.load_state_dict(torch.load(path, map_location=self.config.device))
        else:
            logger.warning("No autoencoder weights found (path=%s); using untrained model", path)

        network.to(self.config.device)
        network.eval()
        self._network = network

    def encode_decode(self, vector: Sequence[float]) -> List[float]:
        if self._network is None:
            self.load()
        if len(vector) != self.config.input_dim:
            raise ModelInferenceError(
                f"Autoencoder expects {self.config.input_dim} features, got {len(vector)}"
            )

        inputs = torch.tensor([list(vector)], dtype=torch.float32, device=self.config.device)
        with torch.no_grad():
            outputs = self._network(inputs)
        return outputs[0].cpu().tolist()
