"""
Base quantizer class that all dataset quantizers inherit from.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import torch
from loguru import logger
from tqdm import tqdm

from ..core.errors import NotTrained


class BaseQuantizer(ABC):
    """
    Abstract base class for dataset quantization.

    A quantizer is trained once on a dataset and can then transform any
    number of datasets with a matching element type.
    """

    def __init__(self):
        logger.info(f"Initialized {self.__class__.__name__}")

    @property
    @abstractmethod
    def is_trained(self) -> bool:
        pass

    @abstractmethod
    def train(self, res, params, dataset: torch.Tensor):
        """
        Fit the quantizer to ``dataset``.

        Args:
            res: Execution resources the dataset lives on
            params: Quantizer parameters
            dataset: 2D floating point tensor

        Returns:
            The trained state
        """
        pass

    @abstractmethod
    def transform(
        self, res, dataset: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """Map a floating point dataset into the quantized domain."""
        pass

    @abstractmethod
    def inverse_transform(
        self, res, quantized: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """Map a quantized dataset back to (approximate) floating point values."""
        pass

    def quantize_collection(
        self, res, datasets: Dict[str, torch.Tensor]
    ) -> Dict[str, torch.Tensor]:
        """
        Quantize a mapping of named datasets (e.g. shards of one corpus).

        Entries that are not 2D floating point tensors are passed through
        unchanged. Any other entry must be a valid transform input; its
        errors propagate to the caller.

        Args:
            res: Execution resources all datasets live on
            datasets: Name -> 2D tensor mapping

        Returns:
            New mapping with quantized tensors in place of the originals

        Raises:
            NotTrained: If called before ``train``
        """
        if not self.is_trained:
            raise NotTrained(f"{self.__class__.__name__} has not been trained")

        result = {}
        total_quantized = 0
        original_size = 0
        quantized_size = 0
        passthrough_size = 0

        with tqdm(datasets.items(), desc=f"Quantizing with {self.__class__.__name__}") as pbar:
            for key, tensor in pbar:
                pbar.set_postfix(current_key=key[:50], refresh=False)

                if (
                    not isinstance(tensor, torch.Tensor)
                    or tensor.dim() != 2
                    or not tensor.is_floating_point()
                ):
                    logger.debug(f"Passing through {key}: not a 2D floating point tensor")
                    result[key] = tensor
                    if isinstance(tensor, torch.Tensor):
                        passthrough_size += tensor.numel() * tensor.element_size()
                    continue

                quantized = self.transform(res, tensor)
                result[key] = quantized
                original_size += tensor.numel() * tensor.element_size()
                quantized_size += quantized.numel() * quantized.element_size()
                total_quantized += 1

        self._log_statistics(total_quantized, original_size, quantized_size, passthrough_size)
        return result

    def _log_statistics(
        self,
        total_quantized: int,
        original_size: int,
        quantized_size: int,
        passthrough_size: int,
    ):
        """Log collection quantization statistics."""
        original_size_mb = original_size / (1024**2)
        quantized_size_mb = quantized_size / (1024**2)
        passthrough_size_mb = passthrough_size / (1024**2)

        if original_size > 0:
            size_reduction_mb = original_size_mb - quantized_size_mb
            reduction_pct = (size_reduction_mb / original_size_mb) * 100
        else:
            size_reduction_mb = 0
            reduction_pct = 0

        logger.info(f"Quantized {total_quantized} datasets")
        logger.info(f"Original size: {original_size_mb:.2f} MB")
        logger.info(f"Quantized size: {quantized_size_mb:.2f} MB")
        logger.info(f"Passed-through size: {passthrough_size_mb:.2f} MB")
        logger.info(f"Size reduction: {size_reduction_mb:.2f} MB ({reduction_pct:.1f}%)")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(trained={self.is_trained})"
