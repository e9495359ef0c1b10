"""
Unit tests for the PyTorch model wrappers (shape and range only).
"""

import pytest
import torch

from inference import ModelConfig, TorchAutoencoder, TorchSequenceRiskModel
from inference.autoencoder import AutoencoderNetwork
from src.anomaly.models import ReconstructionModel, SequenceRiskModel
from src.core.exceptions import ModelInferenceError


@pytest.fixture
def model_config() -> ModelConfig:
    return ModelConfig()


def test_wrappers_satisfy_protocols(model_config):
    assert isinstance(TorchAutoencoder(model_config), ReconstructionModel)
    assert isinstance(TorchSequenceRiskModel(model_config), SequenceRiskModel)


def test_autoencoder_output_shape_and_range(model_config):
    model = TorchAutoencoder(model_config)
    output = model.encode_decode([0.1 * i for i in range(25)])

    assert len(output) == 25
    assert all(0.0 <= v <= 1.0 for v in output)


def test_autoencoder_is_deterministic_for_seed(model_config):
    vector = [0.5] * 25
    first = TorchAutoencoder(model_config).encode_decode(vector)
    second = TorchAutoencoder(model_config).encode_decode(vector)
    assert first == pytest.approx(second)


def test_autoencoder_rejects_wrong_length(model_config):
    with pytest.raises(ModelInferenceError):
        TorchAutoencoder(model_config).encode_decode([0.0] * 24)


def test_autoencoder_loads_saved_weights(tmp_path):
    path = tmp_path / "autoencoder.pt"
    network = AutoencoderNetwork(25)
    torch.save(network.state_dict(), path)

    config = ModelConfig(autoencoder_path=str(path))
    model = TorchAutoencoder(config)
    model.load()

    assert config.weights_available
    assert len(model.encode_decode([0.0] * 25)) == 25


def test_risk_model_scores_probability(model_config):
    model = TorchSequenceRiskModel(model_config)
    score = model.score([0.5, 1.0, 65.0, 2 / 7])
    assert isinstance(score, float)
    assert 0.0 <= score <= 1.0


def test_risk_model_accepts_sequences(model_config):
    model = TorchSequenceRiskModel(model_config)
    score = model.score([[1.0, 0.0, 60.0, 1.0], [0.5, 1.0, 65.0, 0.3]])
    assert 0.0 <= score <= 1.0


def test_risk_model_rejects_wrong_width(model_config):
    with pytest.raises(ModelInferenceError):
        TorchSequenceRiskModel(model_config).score([0.5, 1.0])


def test_missing_weight_paths_are_not_available(tmp_path):
    config = ModelConfig(autoencoder_path=str(tmp_path / "missing.pt"))
    assert not config.weights_available
