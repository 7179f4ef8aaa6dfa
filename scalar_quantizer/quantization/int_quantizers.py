"""Registered scalar quantizers for the supported integer widths."""

import torch

from ..core.registry import QUANTIZER_REGISTRY
from .scalar_quantizer import ScalarQuantizer


@QUANTIZER_REGISTRY.register("int8")
class Int8ScalarQuantizer(ScalarQuantizer):
    """Scalar quantization to signed 8-bit: [-128, 127]."""

    quant_dtype = torch.int8


@QUANTIZER_REGISTRY.register("uint8")
class UInt8ScalarQuantizer(ScalarQuantizer):
    """Scalar quantization to unsigned 8-bit: [0, 255]."""

    quant_dtype = torch.uint8


@QUANTIZER_REGISTRY.register("int16")
class Int16ScalarQuantizer(ScalarQuantizer):
    """Scalar quantization to signed 16-bit: [-32768, 32767]."""

    quant_dtype = torch.int16
