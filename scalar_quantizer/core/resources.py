"""
Execution resources: the handle every quantizer operation is issued against.

A ``Resources`` object ties together a device identity, the backend that
runs work on it, and (for CUDA) the stream that orders that work. It is
passed to each call and never retained by a quantizer.
"""

import contextlib
from typing import Optional, Union

import torch

from .errors import PlacementMismatch
from .registry import BACKEND_REGISTRY


class Resources:
    """Device, stream and backend for one logical stream of work."""

    def __init__(
        self,
        device: Union[str, torch.device] = "cpu",
        stream: Optional["torch.cuda.Stream"] = None,
    ):
        """
        Args:
            device: Torch device the datasets live on (``"cpu"``, ``"cuda:0"``...)
            stream: CUDA stream to issue work on; defaults to the device's
                current stream. Ignored for host devices.
        """
        self.device = torch.device(device)
        if self.device.type == "cuda":
            if self.device.index is None:
                self.device = torch.device("cuda", torch.cuda.current_device())
            self.stream = stream or torch.cuda.current_stream(self.device)
        else:
            self.stream = None

        self.backend = BACKEND_REGISTRY.build(self.device.type, self)

    @property
    def is_device(self) -> bool:
        return self.stream is not None

    def stream_context(self):
        """Context manager under which work is issued on this stream."""
        if self.stream is None:
            return contextlib.nullcontext()
        return torch.cuda.stream(self.stream)

    def synchronize(self):
        """Block until all work issued on this stream has completed."""
        if self.stream is not None:
            self.stream.synchronize()

    def check_placement(self, tensor: torch.Tensor, what: str = "dataset"):
        """
        Ensure ``tensor`` lives where this handle executes.

        Raises:
            PlacementMismatch: If the tensor is on another device
        """
        device = tensor.device
        if device.type != self.device.type or (
            device.type == "cuda" and device.index != self.device.index
        ):
            raise PlacementMismatch(
                f"{what} is on {device} but resources execute on {self.device}"
            )

    def __repr__(self) -> str:
        return f"Resources(device={self.device}, backend={self.backend.name})"
