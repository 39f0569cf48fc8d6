"""
Vectorized 2D pooling kernels (NumPy), used as the compute stage of the
simulated host accelerator.

These kernels implement exactly the same window geometry, divisor convention
and index encoding as `pool2d_cpu`, but loop over the k_h * k_w window
offsets instead of over output cells: each offset is applied to the whole
(N, C, H_out, W_out) output grid at once. Backward passes scatter with
`np.add.at`, which accumulates correctly when windows overlap.

The different traversal order means floating-point sums can round differently
from the reference, which is what the differential verifier's tolerance
absorbs.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ...domain._pooling import PoolingConfig, PoolingMode


def _window_grid(
    config: PoolingConfig, H: int, W: int, H_out: int, W_out: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Return window start rows, start cols and the (H_out, W_out) pool_size grid.
    """
    k_h, k_w = config.window
    s_h, s_w = config.stride
    p_h, p_w = config.pad

    rows0 = np.arange(H_out, dtype=np.int64) * s_h - p_h
    cols0 = np.arange(W_out, dtype=np.int64) * s_w - p_w
    end_r = np.minimum(rows0 + k_h, H + p_h)
    end_c = np.minimum(cols0 + k_w, W + p_w)
    pool_size = (end_r - rows0)[:, None] * (end_c - cols0)[None, :]
    return rows0, cols0, pool_size


def _offset_cells(rows0, cols0, dr: int, dc: int, H: int, W: int):
    """
    For window offset (dr, dc), return clipped coordinates and validity mask.
    """
    r = rows0 + dr
    c = cols0 + dc
    valid = ((r >= 0) & (r < H))[:, None] & ((c >= 0) & (c < W))[None, :]
    rc = np.clip(r, 0, H - 1)[:, None]
    cc = np.clip(c, 0, W - 1)[None, :]
    return rc, cc, valid


def pool2d_forward_vectorized(
    x: np.ndarray, config: PoolingConfig, *, save_indices: bool = True
) -> tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Vectorized pooling forward over an NCHW array.

    Returns
    -------
    tuple[np.ndarray, np.ndarray | None]
        Output array and, for max mode with `save_indices`, an int64 array of
        `row * W + col` offsets (narrowed by the caller).
    """
    N, C, H, W = x.shape
    _, _, H_out, W_out = config.get_forward_output_lengths(x.shape)
    k_h, k_w = config.window
    rows0, cols0, pool_size = _window_grid(config, H, W, H_out, W_out)
    out_shape = (N, C, H_out, W_out)

    if config.mode is PoolingMode.MAX:
        best = np.full(out_shape, np.finfo(x.dtype).min, dtype=x.dtype)
        best_idx = np.zeros(out_shape, dtype=np.int64)
        for dr in range(k_h):
            for dc in range(k_w):
                rc, cc, valid = _offset_cells(rows0, cols0, dr, dc, H, W)
                vals = x[:, :, rc, cc]
                take = valid & (vals > best)
                best = np.where(take, vals, best)
                best_idx = np.where(take, rc * W + cc, best_idx)
        return best, (best_idx if save_indices else None)

    zero = x.dtype.type(0)
    sums = np.zeros(out_shape, dtype=x.dtype)
    for dr in range(k_h):
        for dc in range(k_w):
            rc, cc, valid = _offset_cells(rows0, cols0, dr, dc, H, W)
            sums += np.where(valid, x[:, :, rc, cc], zero)
    return sums / pool_size.astype(x.dtype), None


def pool2d_backward_vectorized(
    grad_out: np.ndarray,
    x_shape: Tuple[int, int, int, int],
    config: PoolingConfig,
    indices: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Vectorized pooling backward; returns the gradient w.r.t. the input.

    Max mode requires the forward index map; average mode re-derives window
    geometry and divisors.
    """
    N, C, H, W = x_shape
    _, _, H_out, W_out = grad_out.shape
    HW = H * W
    grad_x = np.zeros(x_shape, dtype=grad_out.dtype)
    flat_gx = grad_x.reshape(-1)
    plane_base = (np.arange(N * C, dtype=np.int64) * HW)[:, None]

    if config.mode is PoolingMode.MAX:
        if indices is None:
            raise ValueError("Max pooling backward requires forward indices")
        offs = indices.astype(np.int64).reshape(N * C, H_out * W_out)
        np.add.at(flat_gx, (plane_base + offs).ravel(), grad_out.reshape(-1))
        return grad_x

    k_h, k_w = config.window
    rows0, cols0, pool_size = _window_grid(config, H, W, H_out, W_out)
    share = (grad_out / pool_size.astype(grad_out.dtype)).reshape(N * C, H_out * W_out)
    for dr in range(k_h):
        for dc in range(k_w):
            rc, cc, valid = _offset_cells(rows0, cols0, dr, dc, H, W)
            mask = valid.ravel()
            if not mask.any():
                continue
            offs = (rc * W + cc).ravel()[mask]
            np.add.at(flat_gx, (plane_base + offs[None, :]).ravel(), share[:, mask].ravel())
    return grad_x
