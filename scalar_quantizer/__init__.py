"""
Scalar quantization of floating point feature vectors.

A single linear mapping, trained on a robust value range of a dataset,
compresses float16/bfloat16/float32/float64 vectors into narrow integers
(int8 by default) for similarity search and other bandwidth-bound
vector workloads. Host and CUDA resident data are both supported.
"""

__version__ = "1.0.0"

from .backends import DeviceBackend, ExecutionBackend, HostBackend
from .core.errors import (
    DTypeMismatch,
    EmptyInput,
    InvalidParameter,
    NotTrained,
    PlacementMismatch,
    QuantizationError,
    ShapeMismatch,
)
from .core.registry import BACKEND_REGISTRY, QUANTIZER_REGISTRY
from .core.resources import Resources
from .quantization import (
    Int8ScalarQuantizer,
    Int16ScalarQuantizer,
    RangeEstimator,
    ScalarQuantizer,
    SQParams,
    UInt8ScalarQuantizer,
)

__all__ = [
    "BACKEND_REGISTRY",
    "QUANTIZER_REGISTRY",
    "Resources",
    "ExecutionBackend",
    "HostBackend",
    "DeviceBackend",
    "RangeEstimator",
    "ScalarQuantizer",
    "SQParams",
    "Int8ScalarQuantizer",
    "UInt8ScalarQuantizer",
    "Int16ScalarQuantizer",
    "QuantizationError",
    "InvalidParameter",
    "EmptyInput",
    "NotTrained",
    "ShapeMismatch",
    "DTypeMismatch",
    "PlacementMismatch",
]
