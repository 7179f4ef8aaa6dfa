"""Scalar quantization of floating point datasets."""

from .base_quantizer import BaseQuantizer
from .int_quantizers import Int8ScalarQuantizer, Int16ScalarQuantizer, UInt8ScalarQuantizer
from .range_estimator import RangeEstimator
from .scalar_quantizer import ScalarQuantizer, SQParams, Trained, Untrained

__all__ = [
    "BaseQuantizer",
    "RangeEstimator",
    "ScalarQuantizer",
    "SQParams",
    "Trained",
    "Untrained",
    "Int8ScalarQuantizer",
    "UInt8ScalarQuantizer",
    "Int16ScalarQuantizer",
]
