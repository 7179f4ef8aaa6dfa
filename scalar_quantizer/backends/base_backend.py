"""
Base execution backend that the host and device backends implement.

A backend supplies the bulk primitives the range estimator and the
quantizer are written against: a finite-value count, an order-independent
min/max reduction, order-statistic selection, and a block-wise map. The
quantization math itself lives in the quantizer and is shared by every
backend.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import torch

# Reduced-precision inputs are widened for reductions. Every float16 and
# bfloat16 value is exact in float32, so the narrowing back is lossless.
_REDUCTION_DTYPES = {
    torch.float16: torch.float32,
    torch.bfloat16: torch.float32,
}


class ExecutionBackend(ABC):
    """
    Abstract bulk-operation capability bound to one ``Resources`` handle.
    """

    name = "base"
    # Element budget per block for block-wise work; ``None`` processes the
    # whole dataset at once.
    block_elements: Optional[int] = None

    def __init__(self, res):
        """
        Args:
            res: The ``Resources`` handle this backend executes for
        """
        self.res = res

    @staticmethod
    def reduction_view(values: torch.Tensor) -> torch.Tensor:
        """Widen reduced-precision values for reductions and selection."""
        dtype = _REDUCTION_DTYPES.get(values.dtype)
        return values if dtype is None else values.to(dtype)

    def row_blocks(self, dataset: torch.Tensor) -> Iterator[Tuple[int, int]]:
        """Yield ``(start, end)`` row ranges bounded by ``block_elements``."""
        n_rows, n_cols = dataset.shape
        if self.block_elements is None:
            rows_per_block = n_rows
        else:
            rows_per_block = max(1, self.block_elements // max(1, n_cols))
        for start in range(0, n_rows, rows_per_block):
            yield start, min(start + rows_per_block, n_rows)

    @abstractmethod
    def count_finite(self, dataset: torch.Tensor) -> int:
        """Number of finite elements in ``dataset``."""
        pass

    @abstractmethod
    def min_max(self, dataset: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Smallest and largest finite element of ``dataset``.

        Returns:
            Two 0-d tensors with the dataset's dtype
        """
        pass

    @abstractmethod
    def order_statistics(
        self, dataset: torch.Tensor, ranks: Sequence[int]
    ) -> List[torch.Tensor]:
        """
        Select the finite elements at the given 0-based ranks in ascending order.

        Returns:
            One 0-d tensor with the dataset's dtype per rank
        """
        pass

    def map_blocks(
        self,
        fn: Callable[[torch.Tensor], torch.Tensor],
        src: torch.Tensor,
        out: torch.Tensor,
    ) -> torch.Tensor:
        """
        Apply an element-wise ``fn`` to ``src`` block by block, writing into ``out``.
        """
        with self.res.stream_context():
            for start, end in self.row_blocks(src):
                out[start:end].copy_(fn(src[start:end]))
        return out

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(device={self.res.device})"
