"""
CPU reference implementations for 2D pooling (host, NumPy storage).

This module provides **naive, readable, and correct** implementations of the
max and average 2D pooling forward/backward passes for tensors in **NCHW**
layout. They are the ground truth the accelerated backends are verified
against, so every loop is written element by element and mirrors the window
geometry literally.

Window geometry
---------------
For output cell (i, j):

    start_row = i * s_h - p_h            start_col = j * s_w - p_w
    end_row   = min(start_row + k_h, H + p_h)
    end_col   = min(start_col + k_w, W + p_w)
    pool_size = (end_row - start_row) * (end_col - start_col)

`pool_size` is the area of the window clipped to the padded extent
[-p, dim + p). Padding cells count toward the divisor on both the near and the
far side (count-includes-pad), while only in-bounds cells contribute values. The
far-side clip is only active when the output size was clamped to 1. Average
windows made entirely of padding produce 0.

Index encoding
--------------
Max pooling records, per output cell, the offset `row * W + col` of the
winning input element inside its (n, c) plane, stored as uint16. Planes with
more than 65535 elements cannot be encoded.

Parallelism
-----------
Work is split over (n, c) planes only. A plane is always processed by a single
worker, so overlapping windows accumulate into the input gradient in a fixed
order.
"""

from __future__ import annotations

import operator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import numpy as np

from ...domain._errors import IndexIntegrityError, IndexRangeError, ShapeMismatchError
from ...domain._pooling import PoolingConfig, PoolingMode
from ..tensor._tensor import Tensor

INDEX_DTYPE = np.uint16
INDEX_LIMIT = int(np.iinfo(INDEX_DTYPE).max)


@dataclass(frozen=True)
class PoolingOperators:
    """
    Mode-specific reduction behaviour (tagged variant over pooling modes).

    Attributes
    ----------
    mode : PoolingMode
        The tag.
    start : Any
        Identity element of the reduction.
    combine : Callable
        Binary combinator folding one input element into the accumulator.
    final : Callable
        Finalizer mapping `(accumulator, pool_size)` to the emitted value.
    """

    mode: PoolingMode
    start: Any
    combine: Callable[[Any, Any], Any]
    final: Callable[[Any, int], Any]


def _max_combine(acc, item):
    # strictly greater keeps the first maximum in window order
    return item if item[0] > acc[0] else acc


def pooling_operators(mode: PoolingMode, dtype) -> PoolingOperators:
    """
    Build the reduction operators for `mode` over scalar type `dtype`.

    Max accumulates `(value, offset)` pairs starting from the lowest finite
    value of `dtype`; average accumulates a plain sum starting from zero.
    """
    scalar = np.dtype(dtype).type
    if mode is PoolingMode.MAX:
        return PoolingOperators(
            mode=mode,
            start=(scalar(np.finfo(dtype).min), 0),
            combine=_max_combine,
            final=lambda acc, pool_size: acc,
        )
    if mode is PoolingMode.AVERAGE:
        return PoolingOperators(
            mode=mode,
            start=scalar(0),
            combine=operator.add,
            final=lambda acc, pool_size: acc / scalar(pool_size),
        )
    raise ValueError(f"Unknown pooling mode: {mode!r}")


def pool_window(
    i: int, j: int, config: PoolingConfig, in_h: int, in_w: int
) -> Tuple[int, int, int, int, int]:
    """
    Compute the window of output cell (i, j).

    Returns
    -------
    tuple[int, int, int, int, int]
        `(start_row, start_col, end_row, end_col, pool_size)`. Start
        coordinates may be negative; end coordinates are clipped to the
        padded extent.
    """
    k_h, k_w = config.window
    s_h, s_w = config.stride
    p_h, p_w = config.pad

    start_row = i * s_h - p_h
    start_col = j * s_w - p_w
    end_row = min(start_row + k_h, in_h + p_h)
    end_col = min(start_col + k_w, in_w + p_w)
    pool_size = (end_row - start_row) * (end_col - start_col)
    return start_row, start_col, end_row, end_col, pool_size


def pool_divisors(config: PoolingConfig, in_h: int, in_w: int) -> np.ndarray:
    """
    Return the (H_out, W_out) grid of `pool_size` values for one plane.
    """
    _, _, H_out, W_out = config.get_forward_output_lengths((1, 1, in_h, in_w))
    sizes = np.empty((H_out, W_out), dtype=np.int64)
    for i in range(H_out):
        for j in range(W_out):
            sizes[i, j] = pool_window(i, j, config, in_h, in_w)[4]
    return sizes


def _for_each_plane(
    N: int, C: int, fn: Callable[[int, int], None], workers: Optional[int] = None
) -> None:
    """
    Run `fn(n, c)` for every (n, c) plane, optionally on a thread pool.

    Exceptions raised by `fn` propagate to the caller.
    """
    planes = [(n, c) for n in range(N) for c in range(C)]
    if not workers or workers <= 1 or len(planes) <= 1:
        for n, c in planes:
            fn(n, c)
        return

    with ThreadPoolExecutor(max_workers=int(workers)) as pool:
        list(pool.map(lambda nc: fn(*nc), planes))


def forward_pooling(
    x: Tensor,
    config: PoolingConfig,
    *,
    save_indices: bool = True,
    workers: Optional[int] = None,
) -> tuple[Tensor, Optional[np.ndarray]]:
    """
    Naive 2D pooling forward pass (CPU), NCHW.

    Parameters
    ----------
    x : Tensor
        Input tensor of shape (N, C, H, W).
    config : PoolingConfig
        Pooling operator.
    save_indices : bool, optional
        For max mode, whether to produce the index map. Ignored for average
        mode, which never produces one.
    workers : int, optional
        Number of threads used across (n, c) planes.

    Returns
    -------
    tuple[Tensor, np.ndarray | None]
        y :
            Output tensor of shape (N, C, H_out, W_out).
        indices :
            uint16 array with y's shape holding `row * W + col` of each
            selected maximum, or None.

    Raises
    ------
    IndexRangeError
        If an index map is requested for a plane larger than 65535 elements.
    """
    N, C, H, W = x.shape
    out_desc = config.get_forward_output_descriptor(x.desc)
    _, _, H_out, W_out = out_desc.get_lengths()

    y = Tensor(out_desc, dtype=x.dtype)
    want_indices = config.mode is PoolingMode.MAX and save_indices
    if want_indices and H * W > INDEX_LIMIT:
        raise IndexRangeError(H * W, INDEX_LIMIT)
    indices = np.zeros(out_desc.get_lengths(), dtype=INDEX_DTYPE) if want_indices else None

    op = pooling_operators(config.mode, x.dtype)
    k_h, k_w = config.window
    xd = x.data
    yd = y.data

    if config.mode is PoolingMode.MAX:

        def _plane(n: int, c: int) -> None:
            plane = xd[n, c]
            for i in range(H_out):
                for j in range(W_out):
                    r0, c0, _, _, pool_size = pool_window(i, j, config, H, W)
                    acc = op.start
                    for dr in range(k_h):
                        row = r0 + dr
                        if row < 0 or row >= H:
                            continue
                        for dc in range(k_w):
                            col = c0 + dc
                            if col < 0 or col >= W:
                                continue
                            acc = op.combine(acc, (plane[row, col], row * W + col))
                    value, offset = op.final(acc, pool_size)
                    yd[n, c, i, j] = value
                    if indices is not None:
                        indices[n, c, i, j] = offset

    else:

        def _plane(n: int, c: int) -> None:
            plane = xd[n, c]
            for i in range(H_out):
                for j in range(W_out):
                    r0, c0, _, _, pool_size = pool_window(i, j, config, H, W)
                    acc = op.start
                    for dr in range(k_h):
                        row = r0 + dr
                        if row < 0 or row >= H:
                            continue
                        for dc in range(k_w):
                            col = c0 + dc
                            if col < 0 or col >= W:
                                continue
                            acc = op.combine(acc, plane[row, col])
                    yd[n, c, i, j] = op.final(acc, pool_size)

    _for_each_plane(N, C, _plane, workers)
    return y, indices


def backward_pooling(
    x: Tensor,
    grad_output: Tensor,
    y: Tensor,
    config: PoolingConfig,
    indices: Optional[np.ndarray] = None,
    *,
    workers: Optional[int] = None,
) -> Tensor:
    """
    Naive 2D pooling backward pass (CPU), NCHW.

    Parameters
    ----------
    x : Tensor
        Forward input, shape (N, C, H, W).
    grad_output : Tensor
        Gradient with respect to the forward output. Must have exactly y's
        descriptor.
    y : Tensor
        Forward output.
    config : PoolingConfig
        The operator used for the forward pass.
    indices : np.ndarray, optional
        Index map from the forward pass. Required for max mode.
    workers : int, optional
        Number of threads used across (n, c) planes.

    Returns
    -------
    Tensor
        Gradient with respect to x.

    Raises
    ------
    ShapeMismatchError
        If `grad_output` and `y` disagree, or max mode lacks a matching
        index map.
    IndexIntegrityError
        If a decoded max location does not hold the forward output value.

    Notes
    -----
    - Max mode routes each output gradient to its recorded location; several
      output cells may route into the same input cell when windows overlap,
      so gradients accumulate.
    - Average mode re-derives every window and its `pool_size` with the
      forward formula and spreads `grad / pool_size` over the in-bounds cells.
    """
    if grad_output.desc != y.desc:
        raise ShapeMismatchError(
            "grad_output", y.desc.to_string(), grad_output.desc.to_string()
        )

    N, C, H, W = x.shape
    _, _, H_out, W_out = y.shape
    grad_x = Tensor.like(x)
    gx = grad_x.data
    xd = x.data
    yd = y.data
    god = grad_output.data

    if config.mode is PoolingMode.MAX:
        if indices is None or tuple(indices.shape) != y.shape:
            raise ShapeMismatchError(
                "indices",
                y.desc.to_string(),
                "None" if indices is None else str(tuple(indices.shape)),
            )

        def _plane(n: int, c: int) -> None:
            for i in range(H_out):
                for j in range(W_out):
                    offset = int(indices[n, c, i, j])
                    row = offset // W
                    col = offset % W
                    if row >= H or xd[n, c, row, col] != yd[n, c, i, j]:
                        got = xd[n, c, row, col] if row < H else float("nan")
                        raise IndexIntegrityError(
                            (n, c, i, j), offset, got, yd[n, c, i, j]
                        )
                    gx[n, c, row, col] += god[n, c, i, j]

    else:
        k_h, k_w = config.window
        scalar = x.dtype.type

        def _plane(n: int, c: int) -> None:
            for i in range(H_out):
                for j in range(W_out):
                    r0, c0, _, _, pool_size = pool_window(i, j, config, H, W)
                    share = god[n, c, i, j] / scalar(pool_size)
                    for dr in range(k_h):
                        row = r0 + dr
                        if row < 0 or row >= H:
                            continue
                        for dc in range(k_w):
                            col = c0 + dc
                            if col < 0 or col >= W:
                                continue
                            gx[n, c, row, col] += share

    _for_each_plane(N, C, _plane, workers)
    return grad_x
