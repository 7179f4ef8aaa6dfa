"""
Persistence of trained quantizer state and (quantized) datasets.

Trained state is stored as a small safetensors file: the two bounds as 0-d
tensors in their source dtype, everything else as string metadata.
"""

from pathlib import Path
from typing import Dict, Union

import torch
from loguru import logger
from safetensors import safe_open
from safetensors import torch as st
from tqdm import tqdm

from .dtypes import QuantTypeInfo, dtype_name, resolve_source_dtype
from .errors import NotTrained
from .registry import QUANTIZER_REGISTRY

STATE_FORMAT_VERSION = "1"


class StateIO:
    """Save and load quantizer state and datasets."""

    @staticmethod
    def save_state(path: Union[str, Path], quantizer) -> Path:
        """
        Save a trained quantizer.

        Args:
            path: Target ``.safetensors`` file
            quantizer: Trained ``ScalarQuantizer``

        Returns:
            The written path

        Raises:
            NotTrained: If the quantizer has not been trained
        """
        if not quantizer.is_trained:
            raise NotTrained("Cannot save an untrained quantizer")

        path = Path(path)
        if path.suffix != ".safetensors":
            raise ValueError(f"Unsupported state file format: {path.suffix}")
        path.parent.mkdir(parents=True, exist_ok=True)

        state = quantizer.state
        tensors = {
            "min": state.min.detach().cpu().contiguous(),
            "max": state.max.detach().cpu().contiguous(),
        }
        metadata = {
            "format_version": STATE_FORMAT_VERSION,
            "scale": repr(state.scale),
            "source_dtype": dtype_name(state.source_dtype),
            "quant_dtype": state.quant_info.name,
        }
        st.save_file(tensors, str(path), metadata=metadata)
        logger.info(f"Saved quantizer state to: {path}")
        return path

    @staticmethod
    def load_state(path: Union[str, Path]):
        """
        Load a trained quantizer saved with ``save_state``.

        Returns:
            A trained quantizer of the registered class for the stored
            quantized dtype (the generic ``ScalarQuantizer`` otherwise)
        """
        from ..quantization.scalar_quantizer import ScalarQuantizer, Trained

        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"State file not found: {path}")

        with safe_open(str(path), framework="pt") as f:
            metadata = f.metadata() or {}
            lo = f.get_tensor("min")
            hi = f.get_tensor("max")

        version = metadata.get("format_version")
        if version != STATE_FORMAT_VERSION:
            raise ValueError(f"Unsupported state format version: {version}")

        source_dtype = resolve_source_dtype(metadata["source_dtype"])
        quant_info = QuantTypeInfo(metadata["quant_dtype"])
        state = Trained(
            min=lo.to(source_dtype),
            max=hi.to(source_dtype),
            scale=float(metadata["scale"]),
            quant_info=quant_info,
        )

        if quant_info.name in QUANTIZER_REGISTRY:
            quantizer_cls = QUANTIZER_REGISTRY.get(quant_info.name)
        else:
            quantizer_cls = ScalarQuantizer
        logger.info(f"Loaded quantizer state from: {path}")
        return quantizer_cls.from_state(state)

    @staticmethod
    def save_datasets(
        datasets: Dict[str, torch.Tensor],
        path: Union[str, Path],
    ) -> Path:
        """
        Save a mapping of tensors to one file.

        Args:
            datasets: Name -> tensor mapping
            path: ``.safetensors`` or ``.pt``/``.pth`` file

        Returns:
            The written path
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix in [".pt", ".pth"]:
            torch.save(datasets, path)
        elif path.suffix == ".safetensors":
            tensors = {
                k: v.detach().cpu().contiguous()
                for k, v in tqdm(datasets.items(), desc="Staging datasets", leave=False)
            }
            st.save_file(tensors, str(path))
        else:
            raise ValueError(f"Unsupported file format: {path.suffix}")

        total_size = sum(t.numel() * t.element_size() for t in datasets.values())
        logger.info(f"Saved {len(datasets)} datasets to: {path} ({total_size / (1024**2):.2f}MB)")
        return path

    @staticmethod
    def load_datasets(
        path: Union[str, Path],
        device: str = "cpu",
    ) -> Dict[str, torch.Tensor]:
        """
        Load a mapping of tensors saved with ``save_datasets``.

        Args:
            path: ``.safetensors`` or ``.pt``/``.pth`` file
            device: Device to load tensors onto

        Returns:
            Name -> tensor mapping
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Dataset file not found: {path}")

        logger.info(f"Loading datasets from: {path}")
        if path.suffix in [".pt", ".pth"]:
            return torch.load(path, map_location=device, weights_only=True)
        elif path.suffix == ".safetensors":
            datasets = {}
            with safe_open(str(path), framework="pt") as f:
                for k in tqdm(f.keys(), desc=f"Loading {path.name}", leave=False):
                    datasets[k] = f.get_tensor(k).to(device)
            return datasets
        else:
            raise ValueError(f"Unsupported file format: {path.suffix}")
