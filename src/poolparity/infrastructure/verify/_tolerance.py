"""
Floating-point agreement predicates for differential verification.

Reference and accelerated kernels may sum window elements in a different
order, so pooled values are compared with a relative/absolute tolerance that
depends on the scalar type. Index maps are compared exactly elsewhere.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np

# (rtol, atol) per dtype
DEFAULT_TOLERANCES: Dict[np.dtype, Tuple[float, float]] = {
    np.dtype(np.float32): (1e-4, 1e-4),
    np.dtype(np.float64): (1e-12, 1e-12),
}


def tolerance_for(
    dtype, overrides: Optional[Dict[np.dtype, Tuple[float, float]]] = None
) -> Tuple[float, float]:
    """
    Return `(rtol, atol)` for `dtype`, consulting `overrides` first.

    Raises
    ------
    TypeError
        If no tolerance is configured for `dtype`.
    """
    dtype = np.dtype(dtype)
    if overrides and dtype in overrides:
        return overrides[dtype]
    try:
        return DEFAULT_TOLERANCES[dtype]
    except KeyError:
        raise TypeError(f"No comparison tolerance configured for dtype {dtype}") from None


def max_abs_error(a: np.ndarray, b: np.ndarray) -> float:
    """Largest elementwise |a - b| (0.0 for empty arrays)."""
    if a.size == 0:
        return 0.0
    return float(np.max(np.abs(a.astype(np.float64) - b.astype(np.float64))))


def float_equal(a: np.ndarray, b: np.ndarray, *, rtol: float, atol: float) -> bool:
    """
    Elementwise tolerance equality of two same-shaped arrays.

    NaNs compare equal to NaNs in the same position.
    """
    if a.shape != b.shape:
        return False
    return bool(np.allclose(a, b, rtol=rtol, atol=atol, equal_nan=True))
