"""
Table-driven pooling verification sweep.

For one input tensor, `verify_pooling` evaluates every configuration in the
sweep table (both modes by default):

1. forward on both executors; outputs compared within tolerance, index maps
   compared exactly
2. a deterministic output gradient is synthesized from the forward output
3. backward on both executors with the accelerated index map; the reference
   backward re-checks that every decoded index holds the forward maximum
4. input gradients compared within tolerance

Inputs whose planes exceed the 16-bit index range are skipped for every
configuration. A forward disagreement skips the backward check of that
configuration, since backward would run on state already known to be wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ...domain._pooling import PoolingConfig, PoolingMode
from ...domain._tensor import TensorDescriptor
from ..ops.pool2d_cpu import INDEX_LIMIT
from ..pooling._executors import AcceleratedExecutor, ReferenceExecutor
from ..tensor._tensor import Tensor
from ..tensor._tensor_builder import DEFAULT_INPUT_SHAPES, generate_inputs
from ._verifier import (
    BackwardPoolingCheck,
    DifferentialVerifier,
    ForwardPoolingCheck,
    Skip,
    VerificationReport,
)

logger = logging.getLogger(__name__)

Pair = Tuple[int, int]


@dataclass(frozen=True)
class PoolingGeometry:
    """One row of the sweep table: window, stride, pad."""

    window: Pair
    stride: Pair
    pad: Pair


DEFAULT_POOLING_SWEEP: Tuple[PoolingGeometry, ...] = (
    PoolingGeometry(window=(2, 2), stride=(2, 2), pad=(0, 0)),
    PoolingGeometry(window=(2, 2), stride=(1, 1), pad=(0, 0)),
    PoolingGeometry(window=(2, 2), stride=(1, 1), pad=(1, 1)),
    PoolingGeometry(window=(3, 3), stride=(2, 2), pad=(0, 0)),
    PoolingGeometry(window=(3, 3), stride=(1, 1), pad=(1, 1)),
)

DEFAULT_MODES: Tuple[PoolingMode, ...] = (PoolingMode.MAX, PoolingMode.AVERAGE)


def pooling_configs(
    sweep: Iterable[PoolingGeometry] = DEFAULT_POOLING_SWEEP,
    modes: Iterable[PoolingMode] = DEFAULT_MODES,
) -> List[PoolingConfig]:
    """Cross every sweep row with every mode (mode-major order)."""
    rows = list(sweep)
    return [
        PoolingConfig(mode=mode, window=g.window, stride=g.stride, pad=g.pad)
        for mode in modes
        for g in rows
    ]


def within_index_range(desc: TensorDescriptor) -> bool:
    """True when one (n, c) plane of `desc` fits the uint16 index map."""
    return desc.plane_size() <= INDEX_LIMIT


def _c_mod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend (truncated division)."""
    r = abs(a) % b
    return r if a >= 0 else -r


_INT32_MIN = int(np.iinfo(np.int32).min)
_INT32_MAX = int(np.iinfo(np.int32).max)


def _trunc_int32(v) -> int:
    """
    Truncate toward zero into the int32 range.

    NaN, infinities and values outside int32 all map to INT32_MIN, the
    result an x86 float-to-int conversion produces for them.
    """
    if not np.isfinite(v):
        return _INT32_MIN
    t = int(v)
    if t < _INT32_MIN or t > _INT32_MAX:
        return _INT32_MIN
    return t


def synthesize_gradient(y: Tensor) -> Tensor:
    """
    Derive a reproducible output gradient from the forward output.

    For element value x at (n, c, h, w):

        k  = 877n + 547c + 701h + 1049w + trunc32(769 * x)
        dy = x * (k rem 2503) / 1301

    `769 * x` is evaluated in the tensor's scalar type before truncation.
    `trunc32` maps products that are not finite or do not fit int32 to
    INT32_MIN, so every input, including infinities and values near the
    type's limits, yields a gradient.
    """
    scalar = y.dtype.type
    src = y.data

    def _value(n: int, c: int, h: int, w: int) -> float:
        x = src[n, c, h, w]
        k = 877 * n + 547 * c + 701 * h + 1049 * w + _trunc_int32(scalar(769) * x)
        return float(x) * float(_c_mod(k, 2503)) / 1301.0

    with np.errstate(over="ignore", invalid="ignore"):
        return Tensor.like(y).generate(_value)


def verify_pooling(
    x: Tensor,
    *,
    reference=None,
    accelerated=None,
    configs: Optional[Sequence[PoolingConfig]] = None,
    report: Optional[VerificationReport] = None,
    tolerances=None,
) -> VerificationReport:
    """
    Verify accelerated pooling against the reference for one input.

    Parameters
    ----------
    x : Tensor
        Input tensor.
    reference : IPoolingExecutor, optional
        Defaults to `ReferenceExecutor()`.
    accelerated : IPoolingExecutor, optional
        Defaults to an `AcceleratedExecutor` on the host backend.
    configs : sequence of PoolingConfig, optional
        Defaults to `pooling_configs()`.
    report : VerificationReport, optional
        Report to accumulate into.
    tolerances : dict, optional
        Per-dtype `(rtol, atol)` overrides.

    Returns
    -------
    VerificationReport
        The (possibly shared) report.
    """
    if reference is None:
        reference = ReferenceExecutor()
    if accelerated is None:
        from ..backends import get_backend

        accelerated = AcceleratedExecutor(get_backend("host"))
    if configs is None:
        configs = pooling_configs()

    verifier = DifferentialVerifier(report)
    report = verifier.report

    if not within_index_range(x.desc):
        for config in configs:
            report.skipped.append(
                Skip(
                    f"{config.describe()} input=[{x.desc.to_string()}]",
                    f"plane of {x.desc.plane_size()} elements exceeds {INDEX_LIMIT}",
                )
            )
        logger.info(
            "Skipping input %s: plane exceeds the index range", x.desc.to_string()
        )
        return report

    for config in configs:
        fwd = verifier.verify(
            ForwardPoolingCheck(reference, accelerated, config, tolerances), x
        )
        if not fwd.agreed:
            report.skipped.append(
                Skip(
                    f"{config.describe()} input=[{x.desc.to_string()}]",
                    "backward skipped after forward mismatch",
                )
            )
            continue

        y_ref, idx_ref = fwd.reference
        _, idx_acc = fwd.accelerated
        indices = idx_acc if idx_acc is not None else idx_ref
        dy = synthesize_gradient(y_ref)

        bwd = verifier.verify(
            BackwardPoolingCheck(reference, accelerated, config, tolerances),
            x,
            dy,
            y_ref,
            indices,
        )
        if bwd.agreed:
            logger.debug(
                "Pooling agrees: %s input=%s", config.describe(), x.desc.to_string()
            )

    return report


def verify_pooling_shapes(
    shapes: Iterable[Tuple[int, int, int, int]] = DEFAULT_INPUT_SHAPES,
    *,
    dtype=np.float32,
    seed: int = 0,
    reference=None,
    accelerated=None,
    configs: Optional[Sequence[PoolingConfig]] = None,
    tolerances=None,
) -> VerificationReport:
    """
    Drive `verify_pooling` over one generated input per shape.
    """
    report = VerificationReport()
    for x in generate_inputs(shapes, dtype=dtype, seed=seed):
        verify_pooling(
            x,
            reference=reference,
            accelerated=accelerated,
            configs=configs,
            report=report,
            tolerances=tolerances,
        )
    logger.info("Pooling verification: %s", report.summary())
    return report
