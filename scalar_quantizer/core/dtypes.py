"""Element type traits for source (floating) and quantized (integer) data."""

from typing import Dict, Union

import torch

from .errors import InvalidParameter

SOURCE_DTYPES: Dict[str, torch.dtype] = {
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
    "float32": torch.float32,
    "float64": torch.float64,
}

# int64 is left out: its span does not survive the float64 arithmetic
# used by the transforms.
QUANT_DTYPES: Dict[str, torch.dtype] = {
    "int8": torch.int8,
    "uint8": torch.uint8,
    "int16": torch.int16,
    "int32": torch.int32,
}

DTypeLike = Union[str, torch.dtype]


def dtype_name(dtype: torch.dtype) -> str:
    """``torch.float16`` -> ``"float16"``."""
    return str(dtype).replace("torch.", "")


def _resolve(dtype: DTypeLike, table: Dict[str, torch.dtype], kind: str) -> torch.dtype:
    if isinstance(dtype, torch.dtype):
        if dtype in table.values():
            return dtype
        name = dtype_name(dtype)
    else:
        name = str(dtype)
        if name in table:
            return table[name]
    raise InvalidParameter(
        f"Unsupported {kind} dtype: {name}. Valid: {list(table.keys())}"
    )


def resolve_source_dtype(dtype: DTypeLike) -> torch.dtype:
    return _resolve(dtype, SOURCE_DTYPES, "source")


def resolve_quant_dtype(dtype: DTypeLike) -> torch.dtype:
    return _resolve(dtype, QUANT_DTYPES, "quantized")


class QuantTypeInfo:
    """
    Representable range of a quantized integer type.

    ``span`` is ``QuantMax - QuantMin`` computed with Python integers, so it
    never overflows regardless of the target width.
    """

    def __init__(self, dtype: DTypeLike):
        self.dtype = resolve_quant_dtype(dtype)
        info = torch.iinfo(self.dtype)
        self.min = int(info.min)
        self.max = int(info.max)
        self.span = self.max - self.min
        self.bits = info.bits

    @property
    def name(self) -> str:
        return dtype_name(self.dtype)

    def __eq__(self, other) -> bool:
        return isinstance(other, QuantTypeInfo) and self.dtype == other.dtype

    def __hash__(self) -> int:
        return hash(self.dtype)

    def __repr__(self) -> str:
        return f"QuantTypeInfo({self.name}, min={self.min}, max={self.max})"
