"""Serial host backend for datasets resident in CPU memory."""

from typing import List, Sequence, Tuple

import torch
from loguru import logger

from ..core.registry import BACKEND_REGISTRY
from .base_backend import ExecutionBackend

# flips the magnitude bits of negative float64 patterns so they order like ints
_MAGNITUDE_MASK = (1 << 63) - 1


@BACKEND_REGISTRY.register("cpu")
class HostBackend(ExecutionBackend):
    """
    Host execution: row blocks are processed one after another so float64
    temporaries stay within ``block_elements``.

    Order statistics over more than one block are found by bisecting on the
    ordered bit pattern of the values, one counting pass per step, so no
    copy of the whole dataset is made.
    """

    name = "host"
    block_elements = 1 << 22

    def _finite_blocks(self, dataset: torch.Tensor):
        for start, end in self.row_blocks(dataset):
            block = self.reduction_view(dataset[start:end]).reshape(-1)
            yield block[torch.isfinite(block)]

    def count_finite(self, dataset: torch.Tensor) -> int:
        return sum(int(block.numel()) for block in self._finite_blocks(dataset))

    def min_max(self, dataset: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        lo = None
        hi = None
        n_blocks = 0
        for values in self._finite_blocks(dataset):
            n_blocks += 1
            if values.numel() == 0:
                continue
            block_min, block_max = torch.aminmax(values)
            lo = block_min if lo is None else torch.minimum(lo, block_min)
            hi = block_max if hi is None else torch.maximum(hi, block_max)

        logger.debug(f"Host min/max reduction over {n_blocks} block(s)")
        if lo is None:
            inf = torch.tensor(float("inf"), dtype=dataset.dtype)
            return inf, -inf
        return lo.to(dataset.dtype), hi.to(dataset.dtype)

    def order_statistics(
        self, dataset: torch.Tensor, ranks: Sequence[int]
    ) -> List[torch.Tensor]:
        blocks = list(self.row_blocks(dataset))
        if len(blocks) == 1:
            values = next(self._finite_blocks(dataset))
            # kthvalue is 1-based
            return [
                torch.kthvalue(values, rank + 1).values.to(dataset.dtype)
                for rank in ranks
            ]

        logger.debug(f"Host selection of {len(ranks)} rank(s) over {len(blocks)} block(s)")
        lo, hi = self.min_max(dataset)
        lo_key = int(_order_keys(lo.reshape(1))[0])
        hi_key = int(_order_keys(hi.reshape(1))[0])
        return [
            _from_order_key(self._select(dataset, rank, lo_key, hi_key)).to(dataset.dtype)
            for rank in ranks
        ]

    def _count_at_most(self, dataset: torch.Tensor, key: int) -> int:
        return sum(
            int((_order_keys(values) <= key).sum()) for values in self._finite_blocks(dataset)
        )

    def _select(self, dataset: torch.Tensor, rank: int, lo_key: int, hi_key: int) -> int:
        # smallest key with more than ``rank`` finite values at or below it
        while lo_key < hi_key:
            mid = lo_key + (hi_key - lo_key) // 2
            if self._count_at_most(dataset, mid) > rank:
                hi_key = mid
            else:
                lo_key = mid + 1
        return lo_key


def _order_keys(values: torch.Tensor) -> torch.Tensor:
    """Map float values to int64 keys that sort in the same order."""
    bits = values.to(torch.float64).view(torch.int64)
    return torch.where(bits < 0, bits ^ _MAGNITUDE_MASK, bits)


def _from_order_key(key: int) -> torch.Tensor:
    if key < 0:
        key ^= _MAGNITUDE_MASK
    return torch.tensor([key], dtype=torch.int64).view(torch.float64)[0]
