"""
LSTM risk scorer implementing SequenceRiskModel.

Architecture: LSTM(features -> 32) over the input sequence, then
32 -> 16 (ReLU) -> 1 (sigmoid). A single feature vector is scored as a
sequence of length one.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional, Sequence

import torch
from torch import nn

from src.core.exceptions import ModelInferenceError

from .config import ModelConfig

logger = logging.getLogger("inference")


class RiskNetwork(nn.Module):
    def __init__(self, features: int = 4, hidden: int = 32) -> None:
        super().__init__()
        self.lstm = nn.LSTM(input_size=features, hidden_size=hidden, batch_first=True)
        self.head = nn.Sequential(
            nn.Linear(hidden, 16),
            nn.ReLU(),
            nn.Linear(16, 1),
            nn.Sigmoid(),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        _, (hidden, _) = self.lstm(x)
        return self.head(hidden[-1])


@dataclass
class TorchSequenceRiskModel:
    """
    Local LSTM risk model wrapper.

    score() accepts either one feature vector or a sequence of vectors
    (oldest first) and returns a probability in [0, 1].
    """

    config: ModelConfig
    _network: Optional[RiskNetwork] = None

    def load(self) -> None:
        if self._network is not None:
            return
        torch.manual_seed(self.config.seed)
        network = RiskNetwork(self.config.risk_features, self.config.lstm_hidden)

        path = self.config.risk_model_path
        if path and Path(path).exists():
            logger.info("Loading risk model weights from %s", path)
            network.load_state_dict(torch.load(path, map_location=self.config.device))
        else:
            logger.warning("No risk model weights found (path=%s); using untrained model", path)

        network.to(self.config.device)
        network.eval()
        self._network = network

    def score(self, features: Sequence) -> float:
        if self._network is None:
            self.load()

        steps = [list(step) for step in features] if _is_nested(features) else [list(features)]
        if any(len(step) != self.config.risk_features for step in steps):
            raise ModelInferenceError(
                f"Risk model expects {self.config.risk_features} features per step"
            )

        inputs = torch.tensor([steps], dtype=torch.float32, device=self.config.device)
        with torch.no_grad():
            output = self._network(inputs)
        return float(output.reshape(-1)[0].item())


def _is_nested(features: Sequence) -> bool:
    return len(features) > 0 and isinstance(features[0], (list, tuple))
