"""
Pooling operator descriptions and executor contracts for poolparity.

This module defines:

- `PoolingMode`: the two supported reductions (max and average)
- `PoolingConfig`: an immutable description of a 2D pooling operator
  (mode, window, stride, padding) including the output-shape derivation
- `IPoolingExecutor`: the structural contract shared by every
  forward/backward implementation (host reference, accelerated device)

Shape semantics
---------------
Input:
    x.shape == (N, C, H, W)

Output:
    y.shape == (N, C, H_out, W_out)

where:
    H_out = max(1, floor((H + 2*p_h - k_h) / s_h) + 1)
    W_out = max(1, floor((W + 2*p_w - k_w) / s_w) + 1)

Window clipping
---------------
A window spans [i*s - p, i*s - p + k) and is clipped to the padded extent
[-p, dim + p). With floor sizing every such window already ends inside the
padded extent, so the far-side clip only changes `pool_size` when the
`max(1, ...)` clamp applies, i.e. when the window is larger than the padded
input. The default sweep never reaches that case.

Notes
-----
This module contains **no NumPy or backend-specific logic** and is safe to
depend on from any layer of the architecture.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple, runtime_checkable

from ._tensor import TensorDescriptor

Pair = Tuple[int, int]


def _pair(v: int | Pair) -> Pair:
    """Normalize an integer or pair into a 2-tuple of ints."""
    if isinstance(v, (tuple, list)):
        if len(v) != 2:
            raise ValueError(f"Expected a pair, got {v!r}")
        return (int(v[0]), int(v[1]))
    return (int(v), int(v))


class PoolingMode(Enum):
    """
    Enumeration of supported pooling reductions.

    Attributes
    ----------
    MAX : PoolingMode
        Reduction by maximum; the forward pass records the winning offset.
    AVERAGE : PoolingMode
        Reduction by mean over a window-derived divisor.
    """

    MAX = "max"
    AVERAGE = "average"

    @property
    def label(self) -> str:
        """Human-readable mode name used in diagnostics."""
        return "Max" if self is PoolingMode.MAX else "Average"


@dataclass(frozen=True)
class PoolingConfig:
    """
    Immutable description of a 2D pooling operator.

    Parameters
    ----------
    mode : PoolingMode
        Max or average pooling.
    window : int | tuple[int, int]
        Window size (k_h, k_w); both >= 1.
    stride : int | tuple[int, int] | None
        Stride (s_h, s_w); both >= 1. Defaults to `window`.
    pad : int | tuple[int, int]
        Virtual border extension (p_h, p_w); both >= 0. Max pooling also
        requires the padding to be smaller than the window along the same
        axis, so every window holds at least one real element. Average
        pooling accepts any padding; an all-padding window averages to 0.

    Raises
    ------
    ValueError
        If any invariant is violated.
    """

    mode: PoolingMode
    window: Pair
    stride: Optional[Pair] = None
    pad: Pair = (0, 0)

    def __post_init__(self) -> None:
        mode = self.mode
        if not isinstance(mode, PoolingMode):
            mode = PoolingMode(mode)
        window = _pair(self.window)
        stride = _pair(window if self.stride is None else self.stride)
        pad = _pair(self.pad)

        if min(window) < 1:
            raise ValueError(f"Pooling window must be >= 1, got {window}")
        if min(stride) < 1:
            raise ValueError(f"Pooling stride must be >= 1, got {stride}")
        if min(pad) < 0:
            raise ValueError(f"Pooling padding must be >= 0, got {pad}")
        if mode is PoolingMode.MAX and (pad[0] >= window[0] or pad[1] >= window[1]):
            raise ValueError(
                f"Max pooling padding must be smaller than the window, "
                f"got pad={pad} window={window}"
            )

        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "window", window)
        object.__setattr__(self, "stride", stride)
        object.__setattr__(self, "pad", pad)

    @property
    def kernel_size(self) -> Pair:
        return self.window

    @property
    def padding(self) -> Pair:
        return self.pad

    def get_forward_output_lengths(
        self, lengths: Tuple[int, int, int, int]
    ) -> Tuple[int, int, int, int]:
        """
        Compute the forward output lengths for given input lengths.

        Parameters
        ----------
        lengths : tuple[int, int, int, int]
            Input lengths (N, C, H, W).

        Returns
        -------
        tuple[int, int, int, int]
            Output lengths (N, C, H_out, W_out). Each spatial dimension is
            clamped to at least 1 so windows larger than the padded input
            still produce one output cell.
        """
        N, C, H, W = lengths
        k_h, k_w = self.window
        s_h, s_w = self.stride
        p_h, p_w = self.pad
        H_out = max(1, (H + 2 * p_h - k_h) // s_h + 1)
        W_out = max(1, (W + 2 * p_w - k_w) // s_w + 1)
        return (N, C, H_out, W_out)

    def get_forward_output_descriptor(
        self, input_desc: TensorDescriptor
    ) -> TensorDescriptor:
        """Return the descriptor of the forward output for `input_desc`."""
        return TensorDescriptor(self.get_forward_output_lengths(input_desc.get_lengths()))

    def describe(self) -> str:
        """Return a one-line diagnostic description of this operator."""
        return (
            f"{self.mode.label} window={self.window} stride={self.stride} "
            f"pad={self.pad}"
        )


@runtime_checkable
class IPoolingExecutor(Protocol):
    """
    Structural contract for a forward/backward pooling implementation.

    Two executors satisfying this protocol must be interchangeable: given
    identical inputs they produce results that agree within tolerance (values)
    and exactly (max-pooling index maps).
    """

    @property
    def name(self) -> str:
        """Short identifier used in diagnostics (e.g. "reference", "host")."""

    def forward(self, x, config: PoolingConfig):
        """
        Run the forward pass.

        Returns
        -------
        tuple
            `(y, indices)` where `indices` is a uint16 index map for max mode
            and None for average mode.
        """

    def backward(self, x, grad_output, y, config: PoolingConfig, indices):
        """
        Run the backward pass and return the gradient with respect to `x`.
        """
