"""
Tensor descriptors for poolparity.

A `TensorDescriptor` describes the geometry of a 4-D NCHW tensor stored
contiguously in row-major order. It owns no data: storage lives in the
infrastructure `Tensor` (host) or in accelerator device buffers.

This module contains **no NumPy logic** and is safe to depend on from any
layer of the architecture.
"""

from __future__ import annotations

from typing import Tuple

Lengths = Tuple[int, int, int, int]


class TensorDescriptor:
    """
    Immutable NCHW shape descriptor with row-major strides.

    Parameters
    ----------
    lengths : tuple[int, int, int, int]
        Tensor lengths (N, C, H, W). Every dimension must be >= 1.

    Raises
    ------
    ValueError
        If `lengths` is not 4-dimensional or any dimension is < 1.
    """

    __slots__ = ("_lengths", "_strides")

    def __init__(self, lengths) -> None:
        lengths = tuple(int(v) for v in lengths)
        if len(lengths) != 4:
            raise ValueError(f"Expected 4-D (N, C, H, W) lengths, got {lengths}")
        if any(v < 1 for v in lengths):
            raise ValueError(f"All tensor dimensions must be >= 1, got {lengths}")

        _, C, H, W = lengths
        self._lengths: Lengths = lengths
        self._strides: Lengths = (C * H * W, H * W, W, 1)

    def get_lengths(self) -> Lengths:
        """Return the tensor lengths as (N, C, H, W)."""
        return self._lengths

    def get_strides(self) -> Lengths:
        """Return the row-major element strides as (sN, sC, sH, sW)."""
        return self._strides

    def element_space(self) -> int:
        """Return the number of elements addressed by this descriptor."""
        N, C, H, W = self._lengths
        return N * C * H * W

    def plane_size(self) -> int:
        """Return the number of elements in one (n, c) spatial plane."""
        return self._lengths[2] * self._lengths[3]

    def get_index(self, n: int, c: int, h: int, w: int) -> int:
        """
        Return the flat row-major offset of element (n, c, h, w).

        No bounds checking is performed; callers index within lengths.
        """
        sn, sc, sh, sw = self._strides
        return n * sn + c * sc + h * sh + w * sw

    def to_string(self) -> str:
        """Return a diagnostic string listing lengths and strides."""
        lens = ", ".join(str(v) for v in self._lengths)
        strides = ", ".join(str(v) for v in self._strides)
        return f"{lens}, {strides}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TensorDescriptor):
            return NotImplemented
        return self._lengths == other._lengths

    def __hash__(self) -> int:
        return hash(self._lengths)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"TensorDescriptor({self._lengths})"
