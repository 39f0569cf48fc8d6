"""
Synthetic input generation for pooling verification.

Inputs are drawn from a seeded `np.random.Generator` so that a verification
run is reproducible from its seed alone.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional, Tuple

import numpy as np

from ._tensor import Tensor

Shape = Tuple[int, int, int, int]

# Mixed geometries: square and rectangular planes, single-pixel planes,
# odd sizes that leave partial windows at the far edge, and one plane above
# the 16-bit index range so the scope guard is exercised.
DEFAULT_INPUT_SHAPES: Tuple[Shape, ...] = (
    (1, 1, 4, 4),
    (2, 3, 7, 8),
    (1, 2, 5, 5),
    (3, 1, 1, 1),
    (1, 1, 2, 9),
    (2, 2, 16, 13),
    (1, 1, 256, 257),
)


def rand(
    shape: Shape,
    *,
    dtype=np.float32,
    rng: Optional[np.random.Generator] = None,
    low: float = -8.0,
    high: float = 8.0,
) -> Tensor:
    """
    Create a tensor with uniform values in [low, high).

    Parameters
    ----------
    shape : tuple[int, int, int, int]
        NCHW lengths.
    dtype : np.dtype, optional
        float32 or float64.
    rng : np.random.Generator, optional
        Source of randomness. A fresh `default_rng(0)` is used when omitted.
    """
    if rng is None:
        rng = np.random.default_rng(0)
    arr = rng.uniform(low, high, size=shape).astype(dtype, copy=False)
    return Tensor.from_numpy(arr)


def arange(shape: Shape, *, dtype=np.float32) -> Tensor:
    """Create a tensor holding 0, 1, 2, ... in row-major order."""
    n = int(np.prod(shape))
    return Tensor.from_numpy(np.arange(n, dtype=dtype).reshape(shape))


def generate_inputs(
    shapes: Iterable[Shape], *, dtype=np.float32, seed: int = 0
) -> Iterator[Tensor]:
    """
    Yield one random tensor per shape from a single seeded generator.
    """
    rng = np.random.default_rng(seed)
    for shape in shapes:
        yield rand(tuple(shape), dtype=dtype, rng=rng)
