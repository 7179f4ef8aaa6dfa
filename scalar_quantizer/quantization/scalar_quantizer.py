"""
Scalar quantization: one linear mapping shared by a whole dataset.

Training estimates a robust ``[min, max]`` range and derives

    scale = (QuantMax - QuantMin) / (max - min)        (1.0 if max == min)

The forward transform is

    q(x) = clamp(round((x - min) * scale) + QuantMin, QuantMin, QuantMax)

where ``round`` is round-half-away-from-zero. Values above ``max`` map to
``QuantMax``, values below ``min`` and NaN map to ``QuantMin``.

The inverse transform is

    x'(y) = (y - QuantMin) / scale + min

and is lossy: for ``x`` in ``[min, max]`` the reconstruction error is at
most half a quantization step (``0.5 / scale``) plus the rounding of the
source dtype. Values that were clipped during the forward transform are
reconstructed at the range boundary.

All per-element arithmetic runs in float64 on every backend, so host and
device results are identical.
"""

from typing import NamedTuple, Optional, Union

import torch
from loguru import logger

from ..core.dtypes import DTypeLike, QuantTypeInfo, dtype_name
from ..core.errors import DTypeMismatch, EmptyInput, InvalidParameter, NotTrained, ShapeMismatch
from .base_quantizer import BaseQuantizer
from .range_estimator import RangeEstimator, validate_dataset, validate_quantile


class SQParams:
    """Scalar quantizer parameters."""

    def __init__(self, quantile: float = 0.99):
        """
        Args:
            quantile: Fraction of values kept inside the trained range; the
                remaining ``1 - quantile`` is trimmed evenly from both tails.
                Must be within (0, 1].
        """
        self.quantile = quantile

    def validate(self):
        validate_quantile(self.quantile)

    def __eq__(self, other) -> bool:
        return isinstance(other, SQParams) and self.quantile == other.quantile

    def __repr__(self) -> str:
        return f"SQParams(quantile={self.quantile})"


class Untrained(NamedTuple):
    """State of a quantizer that has not seen a dataset yet."""


class Trained(NamedTuple):
    """
    Immutable trained state.

    ``min`` and ``max`` are 0-d host tensors in the source dtype of the
    training dataset; ``scale`` is a Python float (double precision).
    """

    min: torch.Tensor
    max: torch.Tensor
    scale: float
    quant_info: QuantTypeInfo

    @property
    def source_dtype(self) -> torch.dtype:
        return self.min.dtype

    @property
    def quant_dtype(self) -> torch.dtype:
        return self.quant_info.dtype


QuantizerState = Union[Untrained, Trained]


def derive_scale(lo: torch.Tensor, hi: torch.Tensor, quant_info: QuantTypeInfo) -> float:
    """
    Scale mapping ``[lo, hi]`` onto the full quantized span.

    The difference ``hi - lo`` is taken in float64 so a reduced-precision
    source type cannot overflow it.
    """
    lo_d, hi_d = float(lo), float(hi)
    if hi_d > lo_d:
        return float(quant_info.span) / (hi_d - lo_d)
    return 1.0


class ScalarQuantizer(BaseQuantizer):
    """
    Generic scalar quantizer parametrized by its quantized integer type.

    Training is write-once: a second ``train`` call on a trained instance
    is a no-op. A trained instance can be shared by concurrent transform
    calls; training must not run concurrently with them.
    """

    quant_dtype: DTypeLike = torch.int8

    def __init__(self, quant_dtype: Optional[DTypeLike] = None):
        """
        Args:
            quant_dtype: Integer type of quantized data; defaults to the
                class attribute (``int8`` for the generic quantizer)
        """
        self.quant_info = QuantTypeInfo(quant_dtype if quant_dtype is not None else self.quant_dtype)
        self.quant_dtype = self.quant_info.dtype
        self._state: QuantizerState = Untrained()
        super().__init__()

    @classmethod
    def from_state(cls, state: Trained) -> "ScalarQuantizer":
        """Build an already trained quantizer around ``state``."""
        quantizer = cls(state.quant_dtype)
        quantizer._state = state
        return quantizer

    @property
    def state(self) -> QuantizerState:
        return self._state

    @property
    def is_trained(self) -> bool:
        return isinstance(self._state, Trained)

    def _trained_state(self) -> Trained:
        if not isinstance(self._state, Trained):
            raise NotTrained(f"{self.__class__.__name__} has not been trained")
        return self._state

    @property
    def min(self) -> torch.Tensor:
        return self._trained_state().min

    @property
    def max(self) -> torch.Tensor:
        return self._trained_state().max

    @property
    def scale(self) -> float:
        return self._trained_state().scale

    def train(self, res, params: SQParams, dataset: torch.Tensor) -> Trained:
        """
        Estimate the quantization range of ``dataset`` and derive the scale.

        Parameters and dataset are validated first. If the quantizer is
        already trained nothing else happens and the existing state is
        returned; build a new instance to retrain.

        Training reads the two bounds back to the host, which synchronizes
        the resources' stream once.

        Args:
            res: Execution resources the dataset lives on
            params: ``SQParams`` with the trimming quantile
            dataset: 2D floating point tensor, any strides

        Returns:
            The trained state

        Raises:
            InvalidParameter: If ``params.quantile`` is outside (0, 1]
            EmptyInput: If the dataset is empty or has no finite values
            ShapeMismatch: If the dataset is not 2D
            DTypeMismatch: If the dataset is not floating point
            PlacementMismatch: If the dataset is not on ``res.device``
        """
        if not isinstance(params, SQParams):
            raise InvalidParameter(f"params must be SQParams, got {type(params).__name__}")
        params.validate()
        validate_dataset(dataset)
        res.check_placement(dataset)

        if self.is_trained:
            logger.warning(
                f"{self.__class__.__name__} is already trained; ignoring train() call"
            )
            return self._state

        lo, hi = RangeEstimator(params.quantile).estimate(res, dataset)
        lo, hi = lo.cpu(), hi.cpu()
        scale = derive_scale(lo, hi, self.quant_info)

        self._state = Trained(min=lo, max=hi, scale=scale, quant_info=self.quant_info)
        logger.info(
            f"Trained {self.__class__.__name__} on {tuple(dataset.shape)} "
            f"{dtype_name(dataset.dtype)} dataset: min={float(lo):.6g} "
            f"max={float(hi):.6g} scale={scale:.6g} quantile={params.quantile}"
        )
        return self._state

    def _check_out(self, res, out: torch.Tensor, shape: torch.Size, dtype: torch.dtype):
        if not isinstance(out, torch.Tensor):
            raise DTypeMismatch(f"out must be a torch.Tensor, got {type(out).__name__}")
        if out.shape != shape:
            raise ShapeMismatch(
                f"Output shape {tuple(out.shape)} does not match input shape {tuple(shape)}"
            )
        if out.dtype != dtype:
            raise DTypeMismatch(f"Output dtype {out.dtype} does not match expected {dtype}")
        res.check_placement(out, "out")

    def transform(
        self, res, dataset: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """
        Quantize ``dataset``.

        On a CUDA resource the work is only issued; synchronize ``res``
        before reading ``out``.

        Args:
            res: Execution resources the dataset lives on
            dataset: 2D floating point tensor with any values
            out: Optional preallocated output with the dataset's shape and
                the quantized dtype; allocated on the dataset's device if omitted

        Returns:
            The quantized tensor (``out`` when given)

        Raises:
            NotTrained: If called before ``train``
        """
        state = self._trained_state()
        validate_dataset(dataset)
        res.check_placement(dataset)
        if out is not None:
            self._check_out(res, out, dataset.shape, state.quant_dtype)
        else:
            with res.stream_context():
                out = torch.empty(dataset.shape, dtype=state.quant_dtype, device=dataset.device)

        lo, hi = float(state.min), float(state.max)
        scale = state.scale
        qmin, qmax = state.quant_info.min, state.quant_info.max

        def quantize(block: torch.Tensor) -> torch.Tensor:
            x = block.to(torch.float64)
            q = torch.floor((x - lo) * scale + 0.5) + qmin
            q = q.masked_fill(x > hi, qmax)
            q = q.masked_fill(x < lo, qmin)
            q = q.masked_fill(torch.isnan(x), qmin)
            return q.clamp_(qmin, qmax).to(state.quant_dtype)

        return res.backend.map_blocks(quantize, dataset, out)

    def inverse_transform(
        self, res, quantized: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """
        Reconstruct approximate floating point values from ``quantized``.

        The reconstruction is lossy; see the module docstring for the bound.

        Args:
            res: Execution resources the data lives on
            quantized: 2D tensor with the quantizer's integer dtype
            out: Optional preallocated output with the same shape and the
                trained source dtype

        Returns:
            The reconstructed tensor in the trained source dtype

        Raises:
            NotTrained: If called before ``train``
        """
        state = self._trained_state()
        if not isinstance(quantized, torch.Tensor):
            raise DTypeMismatch(f"quantized must be a torch.Tensor, got {type(quantized).__name__}")
        if quantized.dim() != 2:
            raise ShapeMismatch(f"Only 2D quantized datasets supported. Got {quantized.dim()}D tensor")
        n_rows, n_cols = quantized.shape
        if n_rows == 0 or n_cols == 0:
            raise EmptyInput(f"quantized dataset is empty: {n_rows} rows x {n_cols} columns")
        if quantized.dtype != state.quant_dtype:
            raise DTypeMismatch(
                f"quantized dtype {quantized.dtype} does not match quantizer dtype {state.quant_dtype}"
            )
        res.check_placement(quantized, "quantized")
        if out is not None:
            self._check_out(res, out, quantized.shape, state.source_dtype)
        else:
            with res.stream_context():
                out = torch.empty(quantized.shape, dtype=state.source_dtype, device=quantized.device)

        lo = float(state.min)
        scale = state.scale
        qmin = state.quant_info.min

        def dequantize(block: torch.Tensor) -> torch.Tensor:
            y = block.to(torch.float64)
            return ((y - qmin) / scale + lo).to(state.source_dtype)

        return res.backend.map_blocks(dequantize, quantized, out)

    def __repr__(self) -> str:
        if not self.is_trained:
            return f"{self.__class__.__name__}(quant_dtype={self.quant_info.name}, trained=False)"
        return (
            f"{self.__class__.__name__}(quant_dtype={self.quant_info.name}, "
            f"min={float(self.min):.6g}, max={float(self.max):.6g}, scale={self.scale:.6g})"
        )
