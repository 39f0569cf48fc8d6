"""
Host tensor storage for poolparity.

`Tensor` pairs a `TensorDescriptor` with a C-contiguous NumPy buffer of the
same lengths. It is the unit of data exchanged between the pooling reference,
the accelerated executors and the differential verifier.

Design notes
------------
- Storage is always C-contiguous NCHW so the flat offsets produced by
  `TensorDescriptor.get_index` address `data.reshape(-1)` directly.
- Supported scalar types are float32 and float64.
- Tensors are mutated only through `fill`, `generate` and item assignment.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from ...domain._tensor import TensorDescriptor

_SUPPORTED_DTYPES = (np.float32, np.float64)


def _check_dtype(dtype) -> np.dtype:
    dtype = np.dtype(dtype)
    if dtype not in _SUPPORTED_DTYPES:
        raise TypeError(f"Tensor supports float32/float64 only, got {dtype}")
    return dtype


class Tensor:
    """
    NCHW host tensor.

    Parameters
    ----------
    desc : TensorDescriptor | tuple[int, int, int, int]
        Tensor geometry.
    dtype : np.dtype, optional
        float32 (default) or float64.
    data : np.ndarray, optional
        Initial contents. Copied into a contiguous buffer of `dtype`; must have
        exactly `desc`'s lengths. Zero-filled when omitted.
    """

    __slots__ = ("desc", "data")

    def __init__(self, desc, dtype=np.float32, data: np.ndarray | None = None):
        if not isinstance(desc, TensorDescriptor):
            desc = TensorDescriptor(desc)
        dtype = _check_dtype(dtype)

        if data is None:
            buf = np.zeros(desc.get_lengths(), dtype=dtype)
        else:
            buf = np.ascontiguousarray(data, dtype=dtype)
            if buf.shape != desc.get_lengths():
                raise ValueError(
                    f"Data shape {buf.shape} does not match descriptor "
                    f"{desc.get_lengths()}"
                )
            if buf is data:
                buf = buf.copy()

        self.desc = desc
        self.data = buf

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Tensor":
        """Create a tensor from a 4-D float32/float64 NumPy array (copied)."""
        arr = np.asarray(arr)
        return cls(TensorDescriptor(arr.shape), dtype=arr.dtype, data=arr)

    @classmethod
    def like(cls, other: "Tensor") -> "Tensor":
        """Create a zero-filled tensor with `other`'s descriptor and dtype."""
        return cls(other.desc, dtype=other.dtype)

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def shape(self) -> tuple[int, int, int, int]:
        return self.desc.get_lengths()

    def fill(self, value: float) -> "Tensor":
        """Set every element to `value` in-place and return self."""
        self.data.fill(value)
        return self

    def generate(self, fn: Callable[[int, int, int, int], float]) -> "Tensor":
        """
        Overwrite every element with `fn(n, c, h, w)` in row-major order.

        Returns
        -------
        Tensor
            self, for chaining.
        """
        N, C, H, W = self.shape
        out = self.data
        for n in range(N):
            for c in range(C):
                for h in range(H):
                    for w in range(W):
                        out[n, c, h, w] = fn(n, c, h, w)
        return self

    def __getitem__(self, idx):
        return self.data[idx]

    def __setitem__(self, idx, value) -> None:
        self.data[idx] = value

    def __repr__(self) -> str:
        return f"Tensor(shape={self.shape}, dtype={self.dtype})"
