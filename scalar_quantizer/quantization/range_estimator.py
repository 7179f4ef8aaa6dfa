"""
Robust value-range estimation for scalar quantization.

The whole dataset is treated as one flat population of scalars. With
``quantile == 1`` the range is the true min/max; below 1, roughly
``(1 - quantile) / 2`` of the finite values are trimmed from each tail.
"""

import math
from fractions import Fraction
from typing import Tuple

import torch
from loguru import logger

from ..core.errors import DTypeMismatch, EmptyInput, InvalidParameter, ShapeMismatch
from ..core.dtypes import SOURCE_DTYPES


def validate_quantile(quantile: float):
    """
    Raises:
        InvalidParameter: If ``quantile`` is not within (0, 1]
    """
    if isinstance(quantile, bool) or not isinstance(quantile, (int, float)):
        raise InvalidParameter(
            f"quantile must be a number, got {type(quantile).__name__}"
        )
    if not (0.0 < quantile <= 1.0):
        raise InvalidParameter(
            f"quantile for scalar quantization needs to be within (0, 1] but is {quantile}"
        )


def validate_dataset(dataset: torch.Tensor, what: str = "dataset"):
    """
    Check that ``dataset`` is a non-empty 2-D floating point tensor.

    Raises:
        ShapeMismatch: If the tensor is not 2-D
        EmptyInput: If it has zero rows or zero columns
        DTypeMismatch: If its element type is not a supported float type
    """
    if not isinstance(dataset, torch.Tensor):
        raise DTypeMismatch(f"{what} must be a torch.Tensor, got {type(dataset).__name__}")
    if dataset.dim() != 2:
        raise ShapeMismatch(f"Only 2D {what}s supported. Got {dataset.dim()}D tensor")
    n_rows, n_cols = dataset.shape
    if n_rows == 0 or n_cols == 0:
        raise EmptyInput(f"{what} is empty: {n_rows} rows x {n_cols} columns")
    if dataset.dtype not in SOURCE_DTYPES.values():
        raise DTypeMismatch(
            f"{what} dtype {dataset.dtype} is not supported. "
            f"Valid: {list(SOURCE_DTYPES.keys())}"
        )


def quantile_ranks(count: int, quantile: float) -> Tuple[int, int]:
    """
    0-based ranks of the lower and upper bound among ``count`` sorted values.

    ``pos_max = ceil((0.5 + 0.5 q) n) - 1`` and ``pos_min`` mirrors it from
    the bottom, so the two tails always hold the same number of values.
    The product is taken exactly on the decimal value of ``quantile`` so a
    whole-number product is not pushed up a rank by float rounding.
    """
    exact = Fraction(str(quantile))
    pos_max = math.ceil((1 + exact) * count / 2) - 1
    # the upper rank never drops below the median, so pos_min <= pos_max
    pos_max = min(max(pos_max, count // 2), count - 1)
    pos_min = count - pos_max - 1
    return pos_min, pos_max


class RangeEstimator:
    """Computes the effective ``(min, max)`` of a dataset on a backend."""

    def __init__(self, quantile: float = 0.99):
        validate_quantile(quantile)
        self.quantile = float(quantile)

    def estimate(self, res, dataset: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Estimate the trimmed range of ``dataset``.

        Non-finite values are excluded from the population.

        Args:
            res: ``Resources`` handle the dataset is resident on
            dataset: 2D row-major floating point tensor (any strides)

        Returns:
            ``(min, max)`` as 0-d tensors with the dataset's dtype, on its device

        Raises:
            EmptyInput: If the dataset is empty or holds no finite values
        """
        validate_dataset(dataset)
        res.check_placement(dataset)
        backend = res.backend

        if self.quantile == 1.0:
            lo, hi = backend.min_max(dataset)
            if not (torch.isfinite(lo) and torch.isfinite(hi)):
                raise EmptyInput("dataset contains no finite values")
            return lo, hi

        count = backend.count_finite(dataset)
        if count == 0:
            raise EmptyInput("dataset contains no finite values")

        pos_min, pos_max = quantile_ranks(count, self.quantile)
        logger.debug(
            f"Quantile {self.quantile}: selecting ranks {pos_min} and {pos_max} "
            f"of {count} finite values on {backend.name}"
        )
        lo, hi = backend.order_statistics(dataset, (pos_min, pos_max))
        return lo, hi

    def __repr__(self) -> str:
        return f"RangeEstimator(quantile={self.quantile})"
