"""
Accelerator backend selection.

`get_backend("host")` returns the simulated host accelerator, which is always
available. The plain "cpu" device has no accelerator backend; it is served by
`ReferenceExecutor` directly.
"""

from __future__ import annotations

from ...domain._errors import DeviceNotSupportedError
from ...domain.device._device import Device, DeviceType
from ._host_backend import HostDeviceBackend


def get_backend(device: str | Device = "host"):
    """
    Create an accelerator backend for `device`.

    Raises
    ------
    ValueError
        If `device` is not a recognised device string.
    DeviceNotSupportedError
        If `device` names the plain CPU, which has no accelerator backend.
    """
    if not isinstance(device, Device):
        device = Device(device)

    if device.type is DeviceType.HOST:
        return HostDeviceBackend()
    raise DeviceNotSupportedError("accelerated pooling", str(device))


__all__ = ["HostDeviceBackend", "get_backend"]
