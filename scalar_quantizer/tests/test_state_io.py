"""Tests for quantizer state and dataset persistence."""

import tempfile
from pathlib import Path

import pytest
import torch

from ..core.errors import NotTrained
from ..core.resources import Resources
from ..core.state_io import StateIO
from ..quantization import Int8ScalarQuantizer, ScalarQuantizer, SQParams, UInt8ScalarQuantizer


@pytest.fixture
def res():
    return Resources("cpu")


def test_save_and_load_state(res):
    """A reloaded quantizer behaves exactly like the original."""
    torch.manual_seed(0)
    dataset = torch.randn(50, 8, dtype=torch.float16)
    quantizer = UInt8ScalarQuantizer()
    quantizer.train(res, SQParams(quantile=0.9), dataset)

    with tempfile.TemporaryDirectory() as tmpdir:
        path = StateIO.save_state(Path(tmpdir) / "sq.safetensors", quantizer)
        assert path.exists()

        loaded = StateIO.load_state(path)

    assert isinstance(loaded, UInt8ScalarQuantizer)
    assert loaded.is_trained
    assert loaded.min.dtype == torch.float16
    assert loaded.min.item() == quantizer.min.item()
    assert loaded.max.item() == quantizer.max.item()
    assert loaded.scale == quantizer.scale

    q = quantizer.transform(res, dataset)
    assert torch.equal(loaded.transform(res, dataset), q)
    assert torch.equal(loaded.inverse_transform(res, q), quantizer.inverse_transform(res, q))


def test_generic_quantizer_state(res):
    """Types without a registered class load as the generic quantizer."""
    quantizer = ScalarQuantizer(torch.int32)
    quantizer.train(res, SQParams(quantile=1.0), torch.tensor([[0.0, 1.0]], dtype=torch.float64))

    with tempfile.TemporaryDirectory() as tmpdir:
        path = StateIO.save_state(Path(tmpdir) / "nested" / "sq.safetensors", quantizer)
        loaded = StateIO.load_state(path)

    assert type(loaded) is ScalarQuantizer
    assert loaded.quant_dtype == torch.int32
    assert loaded.min.dtype == torch.float64


def test_loaded_quantizer_ignores_training(res):
    """Loaded state is trained state: train() is a no-op."""
    quantizer = Int8ScalarQuantizer()
    quantizer.train(res, SQParams(quantile=1.0), torch.tensor([[0.0, 100.0]]))

    with tempfile.TemporaryDirectory() as tmpdir:
        loaded = StateIO.load_state(StateIO.save_state(Path(tmpdir) / "sq.safetensors", quantizer))

    loaded.train(res, SQParams(quantile=1.0), torch.tensor([[-5.0, 5.0]]))
    assert loaded.max.item() == 100.0


def test_save_untrained_state():
    """Only trained quantizers can be saved."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(NotTrained):
            StateIO.save_state(Path(tmpdir) / "sq.safetensors", Int8ScalarQuantizer())


def test_state_file_errors(res):
    """Wrong suffixes and missing files are reported."""
    quantizer = Int8ScalarQuantizer()
    quantizer.train(res, SQParams(), torch.randn(4, 4))

    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValueError):
            StateIO.save_state(Path(tmpdir) / "sq.json", quantizer)
        with pytest.raises(FileNotFoundError):
            StateIO.load_state(Path(tmpdir) / "missing.safetensors")


@pytest.mark.parametrize("suffix", [".safetensors", ".pt"])
def test_save_and_load_datasets(res, suffix):
    """Quantized shards survive a save/load cycle."""
    torch.manual_seed(1)
    quantizer = Int8ScalarQuantizer()
    shards = {"shard0": torch.randn(16, 4), "shard1": torch.randn(8, 4)}
    quantizer.train(res, SQParams(), shards["shard0"])
    quantized = quantizer.quantize_collection(res, shards)

    with tempfile.TemporaryDirectory() as tmpdir:
        path = StateIO.save_datasets(quantized, Path(tmpdir) / f"shards{suffix}")
        loaded = StateIO.load_datasets(path)

    assert set(loaded.keys()) == {"shard0", "shard1"}
    for key in quantized:
        assert loaded[key].dtype == torch.int8
        assert torch.equal(loaded[key], quantized[key])


def test_dataset_file_errors():
    """Unsupported formats and missing files are reported."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValueError):
            StateIO.save_datasets({"a": torch.zeros(2, 2)}, Path(tmpdir) / "a.npy")
        with pytest.raises(FileNotFoundError):
            StateIO.load_datasets(Path(tmpdir) / "missing.safetensors")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
