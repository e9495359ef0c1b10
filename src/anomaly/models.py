"""
Model interfaces used by the pattern and risk detectors.

The engine depends only on these two narrow protocols; any numeric framework
(or a hand-written stub) can sit behind them.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class ReconstructionModel(Protocol):
    """Encode-then-decode model over a fixed-length feature vector."""

    def encode_decode(self, vector: Sequence[float]) -> Sequence[float]:
        ...


@runtime_checkable
class SequenceRiskModel(Protocol):
    """Scores a health feature vector as a risk probability in [0, 1]."""

    def score(self, features: Sequence[float]) -> float:
        ...
