"""
Accelerator backend contracts for poolparity.

This module defines a duck-typed `IAcceleratorBackend` protocol describing the
command-submission layer an accelerated pooling executor needs: buffer
allocation, host <-> device transfer, and pooling kernel dispatch.

Design notes
------------
- Device buffers are represented as integer handles (`DevPtr`). A backend
  maps them to its own memory; the simulated host device uses them as keys
  into a private buffer table. Handle 0 is the null handle.
- All calls are synchronous from the caller's perspective.
- Callers own every handle they obtain and must release it with `free`.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from .._pooling import PoolingConfig
from .._tensor import TensorDescriptor

DevPtr = int


@runtime_checkable
class IAcceleratorBackend(Protocol):
    """
    Duck-typed accelerator backend contract.

    Any object that provides these members can back an `AcceleratedExecutor`.
    """

    device: object

    def allocate(self, dtype, count: int) -> DevPtr: ...

    def write(self, host) -> DevPtr: ...

    def read(self, dev: DevPtr, count: int, dtype): ...

    def memset_zero(self, dev: DevPtr) -> None: ...

    def free(self, dev: DevPtr) -> None: ...

    def synchronize(self) -> None: ...

    def live_allocations(self) -> int: ...

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
    ) -> None: ...

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
    ) -> None: ...
