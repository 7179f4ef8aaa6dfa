"""CUDA backend issuing every operation on the resources' stream."""

from typing import List, Sequence, Tuple

import torch

from ..core.registry import BACKEND_REGISTRY
from .base_backend import ExecutionBackend


@BACKEND_REGISTRY.register("cuda")
class DeviceBackend(ExecutionBackend):
    """
    Accelerator execution. Work is asynchronous with respect to the caller:
    outputs must not be read before the stream is synchronized.

    Only ``count_finite`` and ``order_statistics`` read a value back to the
    host, which synchronizes the stream; both are used by training only.
    """

    name = "device"
    block_elements = None

    def count_finite(self, dataset: torch.Tensor) -> int:
        with self.res.stream_context():
            return int(torch.isfinite(dataset).sum().item())

    def min_max(self, dataset: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        with self.res.stream_context():
            values = self.reduction_view(dataset)
            finite = torch.isfinite(values)
            inf = torch.tensor(float("inf"), dtype=values.dtype, device=values.device)
            lo = torch.where(finite, values, inf).amin()
            hi = torch.where(finite, values, -inf).amax()
            return lo.to(dataset.dtype), hi.to(dataset.dtype)

    def order_statistics(
        self, dataset: torch.Tensor, ranks: Sequence[int]
    ) -> List[torch.Tensor]:
        with self.res.stream_context():
            values = self.reduction_view(dataset).reshape(-1)
            values = values[torch.isfinite(values)]
            ordered = torch.sort(values).values
            return [ordered[rank].to(dataset.dtype) for rank in ranks]
