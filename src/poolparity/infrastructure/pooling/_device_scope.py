"""
Scoped ownership of accelerator device buffers.

`DeviceScope` records every buffer allocated through it and frees them all
when the `with` block exits, whether normally or through an exception (for
example a failed index self-check). Release errors never mask the original
exception.
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from ...domain.device._device_protocol import DevPtr

logger = logging.getLogger(__name__)


class DeviceScope:
    """
    Context manager owning device buffers on one backend.

    Examples
    --------
    >>> with DeviceScope(backend) as scope:
    ...     x_dev = scope.write(x)
    ...     y_dev = scope.allocate(np.float32, 16)
    ...     y = scope.read(y_dev, 16, np.float32)
    """

    def __init__(self, backend) -> None:
        self.backend = backend
        self._owned: List[DevPtr] = []

    def __enter__(self) -> "DeviceScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.release()
        except Exception:
            # already logged by release(); the in-flight exception wins
            if exc_type is None:
                raise

    def allocate(self, dtype, count: int) -> DevPtr:
        dev = self.backend.allocate(dtype, count)
        self._owned.append(dev)
        return dev

    def write(self, host: np.ndarray) -> DevPtr:
        dev = self.backend.write(host)
        self._owned.append(dev)
        return dev

    def read(self, dev: DevPtr, count: int, dtype) -> np.ndarray:
        return self.backend.read(dev, count, dtype)

    def release(self) -> None:
        """Free every owned buffer, newest first."""
        first_error = None
        while self._owned:
            dev = self._owned.pop()
            try:
                self.backend.free(dev)
            except Exception as e:
                logger.error("Failed to free device buffer %s: %s", dev, e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
