"""Execution backends for host and accelerator resident datasets."""

from .base_backend import ExecutionBackend
from .device_backend import DeviceBackend
from .host_backend import HostBackend

__all__ = [
    "ExecutionBackend",
    "HostBackend",
    "DeviceBackend",
]
