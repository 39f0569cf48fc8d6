"""
Interchangeable pooling executors.

- `ReferenceExecutor` computes pooling directly on host memory with the naive
  kernels in `ops.pool2d_cpu`.
- `AcceleratedExecutor` stages operands into accelerator device memory,
  invokes the backend's pooling kernels, and reads results back. Every device
  buffer lives inside a `DeviceScope` and is released on every exit path.

Both satisfy `IPoolingExecutor`: `forward(x, config) -> (y, indices)` and
`backward(x, grad_output, y, config, indices) -> grad_x`.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ...domain._errors import IndexRangeError, ShapeMismatchError
from ...domain._pooling import PoolingConfig, PoolingMode
from ..ops.pool2d_cpu import (
    INDEX_DTYPE,
    INDEX_LIMIT,
    backward_pooling,
    forward_pooling,
)
from ..tensor._tensor import Tensor
from ._device_scope import DeviceScope


class ReferenceExecutor:
    """
    Host reference executor.

    Parameters
    ----------
    workers : int, optional
        Threads used across (n, c) planes; planes never share output cells.
    """

    def __init__(self, workers: Optional[int] = None) -> None:
        self.workers = workers

    @property
    def name(self) -> str:
        return "reference"

    def forward(self, x: Tensor, config: PoolingConfig):
        return forward_pooling(x, config, save_indices=True, workers=self.workers)

    def backward(
        self,
        x: Tensor,
        grad_output: Tensor,
        y: Tensor,
        config: PoolingConfig,
        indices: Optional[np.ndarray],
    ) -> Tensor:
        return backward_pooling(
            x, grad_output, y, config, indices, workers=self.workers
        )


class AcceleratedExecutor:
    """
    Device executor driving an `IAcceleratorBackend`.

    The call sequence per pass is: allocate and write inputs, allocate
    outputs, dispatch the kernel (synchronous), read outputs back, release.
    """

    def __init__(self, backend) -> None:
        self.backend = backend

    @property
    def name(self) -> str:
        return str(self.backend.device)

    def forward(self, x: Tensor, config: PoolingConfig):
        """
        Run pooling forward on the device.

        Raises
        ------
        IndexRangeError
            For max mode on planes larger than the 16-bit index range.
        """
        in_desc = x.desc
        out_desc = config.get_forward_output_descriptor(in_desc)
        count = out_desc.element_space()
        save_indices = config.mode is PoolingMode.MAX
        if save_indices and in_desc.plane_size() > INDEX_LIMIT:
            raise IndexRangeError(in_desc.plane_size(), INDEX_LIMIT)

        with DeviceScope(self.backend) as scope:
            x_dev = scope.write(x.data)
            y_dev = scope.allocate(x.dtype, count)
            idx_dev = None
            idx_nbytes = 0
            if save_indices:
                idx_dev = scope.allocate(INDEX_DTYPE, count)
                idx_nbytes = count * np.dtype(INDEX_DTYPE).itemsize
                self.backend.memset_zero(idx_dev)

            self.backend.pooling_forward(
                config,
                in_desc,
                x_dev,
                out_desc,
                y_dev,
                save_indices,
                idx_dev,
                idx_nbytes,
                x.dtype,
            )

            lengths = out_desc.get_lengths()
            y = Tensor(
                out_desc, dtype=x.dtype, data=scope.read(y_dev, count, x.dtype).reshape(lengths)
            )
            indices = None
            if save_indices:
                indices = scope.read(idx_dev, count, INDEX_DTYPE).reshape(lengths)
        return y, indices

    def backward(
        self,
        x: Tensor,
        grad_output: Tensor,
        y: Tensor,
        config: PoolingConfig,
        indices: Optional[np.ndarray],
    ) -> Tensor:
        """
        Run pooling backward on the device.

        Raises
        ------
        ShapeMismatchError
            If `grad_output` does not match `y`, or max mode lacks indices.
        """
        if grad_output.desc != y.desc:
            raise ShapeMismatchError(
                "grad_output", y.desc.to_string(), grad_output.desc.to_string()
            )
        max_mode = config.mode is PoolingMode.MAX
        if max_mode and (indices is None or tuple(indices.shape) != y.shape):
            raise ShapeMismatchError(
                "indices",
                y.desc.to_string(),
                "None" if indices is None else str(tuple(indices.shape)),
            )

        with DeviceScope(self.backend) as scope:
            y_dev = scope.write(y.data)
            dy_dev = scope.write(grad_output.data)
            x_dev = scope.write(x.data)
            idx_dev = (
                scope.write(np.ascontiguousarray(indices, dtype=INDEX_DTYPE))
                if max_mode
                else None
            )
            dx_dev = scope.allocate(x.dtype, x.desc.element_space())

            self.backend.pooling_backward(
                config,
                y.desc,
                y_dev,
                grad_output.desc,
                dy_dev,
                x.desc,
                x_dev,
                x.desc,
                dx_dev,
                idx_dev,
                x.dtype,
            )

            dx = scope.read(dx_dev, x.desc.element_space(), x.dtype)
        return Tensor(x.desc, dtype=x.dtype, data=dx.reshape(x.shape))
