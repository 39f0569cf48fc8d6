"""
Device abstraction utilities.

This module defines lightweight abstractions for representing the places a
pooling implementation can execute on:

- `DeviceType`: an enumeration of supported device categories
- `Device`: a concrete device descriptor that validates user-facing device
  strings ("cpu" or "host")

"cpu" denotes plain host memory (the reference implementation). "host" denotes
the simulated accelerator that keeps its own device-memory table on the host.
"""

from enum import Enum


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    Attributes
    ----------
    CPU : DeviceType
        Host memory, computed directly (reference path).
    HOST : DeviceType
        Simulated accelerator backed by host memory.
    """

    CPU = "cpu"
    HOST = "host"


class Device:
    """
    Concrete computation device descriptor.

    Parameters
    ----------
    device : str
        Device identifier string, "cpu" or "host".

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.
    """

    __slots__ = ("type",)

    def __init__(self, device: str):
        try:
            self.type = DeviceType(device)
        except ValueError:
            raise ValueError(
                f"Invalid device '{device}'. Expected 'cpu' or 'host'"
            ) from None

    def __str__(self) -> str:
        return self.type.value

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Device):
            return NotImplemented
        return self.type is other.type

    def __hash__(self) -> int:
        return hash(self.type)
