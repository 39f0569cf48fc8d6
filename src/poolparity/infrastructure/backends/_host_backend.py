"""
Simulated accelerator backend that keeps "device memory" on the host.

`HostDeviceBackend` follows a GPU-style command-submission model: operands
are written into device buffers addressed by integer handles, kernels read
and write only those buffers, and results are read back into fresh host
arrays. Buffers are raw byte arrays, so every transfer is a real copy and a
kernel never aliases caller memory.

The compute stage runs the vectorized NumPy kernels from
`ops.pool2d_vectorized`.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, Optional

import numpy as np

from ...domain._pooling import PoolingConfig, PoolingMode
from ...domain._tensor import TensorDescriptor
from ...domain.device._device import Device
from ...domain.device._device_protocol import DevPtr
from ..ops.pool2d_cpu import INDEX_DTYPE, INDEX_LIMIT
from ..ops.pool2d_vectorized import (
    pool2d_backward_vectorized,
    pool2d_forward_vectorized,
)

logger = logging.getLogger(__name__)

_SUPPORTED_DTYPES = (np.float32, np.float64)


def _check_float_dtype(op: str, dtype) -> np.dtype:
    dtype = np.dtype(dtype)
    if dtype not in _SUPPORTED_DTYPES:
        raise TypeError(f"{op} supports float32/float64 only, got {dtype}")
    return dtype


class HostDeviceBackend:
    """
    Host-memory accelerator backend.

    Notes
    -----
    - Handle 0 is never issued, mirroring a null device pointer.
    - `free(0)` is a no-op; freeing an unknown handle raises RuntimeError.
    - The buffer table is guarded by a lock so independent executors may
      share one backend across threads.
    """

    def __init__(self) -> None:
        self.device = Device("host")
        self._buffers: Dict[DevPtr, bytearray] = {}
        self._next = itertools.count(1)
        self._lock = threading.Lock()

    # ----------------------------
    # memory management
    # ----------------------------

    def _buffer(self, dev: DevPtr) -> bytearray:
        try:
            return self._buffers[int(dev)]
        except KeyError:
            raise RuntimeError(f"Invalid device handle: {dev}") from None

    def _view(self, dev: DevPtr, dtype, count: Optional[int] = None) -> np.ndarray:
        arr = np.frombuffer(self._buffer(dev), dtype=dtype)
        return arr if count is None else arr[:count]

    def allocate(self, dtype, count: int) -> DevPtr:
        """Allocate an uninitialized buffer of `count` elements of `dtype`."""
        nbytes = int(count) * np.dtype(dtype).itemsize
        with self._lock:
            dev = next(self._next)
            self._buffers[dev] = bytearray(nbytes)
        return dev

    def write(self, host: np.ndarray) -> DevPtr:
        """Allocate a buffer and copy `host` into it."""
        host = np.ascontiguousarray(host)
        dev = self.allocate(host.dtype, host.size)
        self._view(dev, host.dtype)[:] = host.reshape(-1)
        return dev

    def read(self, dev: DevPtr, count: int, dtype) -> np.ndarray:
        """Copy `count` elements of `dtype` from a device buffer to the host."""
        return self._view(dev, dtype, int(count)).copy()

    def memset_zero(self, dev: DevPtr) -> None:
        buf = self._buffer(dev)
        buf[:] = bytes(len(buf))

    def free(self, dev: DevPtr) -> None:
        if int(dev) == 0:
            return
        with self._lock:
            if self._buffers.pop(int(dev), None) is None:
                raise RuntimeError(f"Double free or invalid device handle: {dev}")

    def synchronize(self) -> None:
        """No-op: host kernels complete before returning."""

    def live_allocations(self) -> int:
        return len(self._buffers)

    # ----------------------------
    # pooling kernels
    # ----------------------------

    def pooling_forward(
        self,
        config: PoolingConfig,
        in_desc: TensorDescriptor,
        x_dev: DevPtr,
        out_desc: TensorDescriptor,
        y_dev: DevPtr,
        save_indices: bool,
        idx_dev: Optional[DevPtr],
        idx_nbytes: int,
        dtype,
    ) -> None:
        """
        Run pooling forward from `x_dev` into `y_dev` (and `idx_dev`).

        Raises
        ------
        ValueError
            If `out_desc` is not the forward output of `in_desc`, or the index
            buffer is missing or too small.
        """
        dtype = _check_float_dtype("pooling_forward", dtype)
        if config.get_forward_output_descriptor(in_desc) != out_desc:
            raise ValueError(
                f"Output descriptor {out_desc.to_string()} is not the forward "
                f"output of {in_desc.to_string()}"
            )

        write_idx = save_indices and config.mode is PoolingMode.MAX
        if write_idx:
            need = out_desc.element_space() * np.dtype(INDEX_DTYPE).itemsize
            if idx_dev is None or idx_nbytes < need:
                raise ValueError(
                    f"Index buffer too small: need {need} bytes, got {idx_nbytes}"
                )
            if in_desc.plane_size() > INDEX_LIMIT:
                raise ValueError(
                    f"Input plane of {in_desc.plane_size()} elements exceeds the "
                    f"index range ({INDEX_LIMIT})"
                )

        x = self._view(x_dev, dtype, in_desc.element_space()).reshape(
            in_desc.get_lengths()
        )
        y, idx = pool2d_forward_vectorized(x, config, save_indices=write_idx)

        self._view(y_dev, dtype, out_desc.element_space())[:] = y.reshape(-1)
        if write_idx:
            self._view(idx_dev, INDEX_DTYPE, out_desc.element_space())[:] = (
                idx.reshape(-1).astype(INDEX_DTYPE)
            )
        logger.debug("host pooling_forward %s in=%s", config.describe(), in_desc)

    def pooling_backward(
        self,
        config: PoolingConfig,
        out_desc: TensorDescriptor,
        y_dev: DevPtr,
        dy_desc: TensorDescriptor,
        dy_dev: DevPtr,
        in_desc: TensorDescriptor,
        x_dev: DevPtr,
        dx_desc: TensorDescriptor,
        dx_dev: DevPtr,
        idx_dev: Optional[DevPtr],
        dtype,
    ) -> None:
        """
        Run pooling backward from `dy_dev` into `dx_dev`.

        The gradient buffer is overwritten, not accumulated into.
        """
        dtype = _check_float_dtype("pooling_backward", dtype)
        if dy_desc != out_desc:
            raise ValueError(
                f"grad_output descriptor {dy_desc.to_string()} does not match "
                f"output {out_desc.to_string()}"
            )
        if dx_desc != in_desc:
            raise ValueError(
                f"grad_input descriptor {dx_desc.to_string()} does not match "
                f"input {in_desc.to_string()}"
            )

        indices = None
        if config.mode is PoolingMode.MAX:
            if idx_dev is None:
                raise ValueError("Max pooling backward requires an index buffer")
            indices = self._view(idx_dev, INDEX_DTYPE, out_desc.element_space()).reshape(
                out_desc.get_lengths()
            )

        dy = self._view(dy_dev, dtype, dy_desc.element_space()).reshape(
            dy_desc.get_lengths()
        )
        dx = pool2d_backward_vectorized(dy, in_desc.get_lengths(), config, indices)
        self._view(dx_dev, dtype, dx_desc.element_space())[:] = dx.reshape(-1)
        logger.debug("host pooling_backward %s in=%s", config.describe(), in_desc)
