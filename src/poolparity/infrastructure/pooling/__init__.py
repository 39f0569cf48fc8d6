from ._device_scope import DeviceScope
from ._executors import AcceleratedExecutor, ReferenceExecutor
