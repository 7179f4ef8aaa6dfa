"""Core modules for scalar quantization"""

from .config_parser import ConfigParser
from .dtypes import QuantTypeInfo
from .errors import (
    DTypeMismatch,
    EmptyInput,
    InvalidParameter,
    NotTrained,
    PlacementMismatch,
    QuantizationError,
    ShapeMismatch,
)
from .registry import BACKEND_REGISTRY, QUANTIZER_REGISTRY
from .resources import Resources
from .state_io import StateIO

__all__ = [
    "ConfigParser",
    "QuantTypeInfo",
    "Resources",
    "StateIO",
    "BACKEND_REGISTRY",
    "QUANTIZER_REGISTRY",
    "QuantizationError",
    "InvalidParameter",
    "EmptyInput",
    "NotTrained",
    "ShapeMismatch",
    "DTypeMismatch",
    "PlacementMismatch",
]
