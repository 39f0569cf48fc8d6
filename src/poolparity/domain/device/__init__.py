from ._device import Device, DeviceType
from ._device_protocol import DevPtr, IAcceleratorBackend
