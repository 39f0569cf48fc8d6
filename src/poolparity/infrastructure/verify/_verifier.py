"""
Generic differential verification.

`DifferentialVerifier.verify(op, *args)` runs `op.reference(*args)` and
`op.accelerated(*args)` on identical inputs, asks `op.compare` whether the
results agree, and on disagreement calls `op.report_mismatch` and records a
`Mismatch` in the shared `VerificationReport`. Disagreements never stop a
sweep. Exceptions raised by either implementation (precondition violations,
index self-check failures) propagate unchanged.

An operation is any object providing:

- `name`: short label used in reports
- `reference(*args)` / `accelerated(*args)`
- `compare(ref, acc) -> Optional[tuple[str, float]]`: None when the results
  agree, otherwise `(detail, max_abs_error)`
- `report_mismatch(detail, *args)`: emit diagnostics and return a one-line
  context string (mode, tensor descriptors)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np

from ...domain._errors import VerificationError
from ...domain._pooling import PoolingConfig
from ..tensor._tensor import Tensor
from ._tolerance import float_equal, max_abs_error, tolerance_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mismatch:
    """One reference/accelerated disagreement."""

    check: str
    context: str
    detail: str
    max_abs_error: float

    def __str__(self) -> str:
        return f"{self.check}: {self.context}: {self.detail}"


@dataclass(frozen=True)
class Skip:
    """One case left unevaluated on purpose."""

    context: str
    reason: str


@dataclass
class VerificationReport:
    """
    Aggregated outcome of a verification sweep.

    Attributes
    ----------
    passed : int
        Number of checks whose implementations agreed.
    mismatches : list[Mismatch]
        Recorded disagreements.
    skipped : list[Skip]
        Cases excluded by scope guards.
    """

    passed: int = 0
    mismatches: List[Mismatch] = field(default_factory=list)
    skipped: List[Skip] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches

    @property
    def checked(self) -> int:
        return self.passed + len(self.mismatches)

    def summary(self) -> str:
        return (
            f"{self.checked} checks: {self.passed} passed, "
            f"{len(self.mismatches)} failed, {len(self.skipped)} skipped"
        )

    def raise_if_failed(self) -> None:
        """
        Raises
        ------
        VerificationError
            If any mismatch was recorded.
        """
        if self.mismatches:
            raise VerificationError(self.mismatches)


@dataclass
class CheckResult:
    reference: Any
    accelerated: Any
    agreed: bool


class DifferentialVerifier:
    """
    Runs paired implementations and adjudicates agreement.

    Parameters
    ----------
    report : VerificationReport, optional
        Report to accumulate into; a fresh one is created when omitted.
    """

    def __init__(self, report: Optional[VerificationReport] = None) -> None:
        self.report = report if report is not None else VerificationReport()

    def verify(self, op, *args) -> CheckResult:
        ref = op.reference(*args)
        acc = op.accelerated(*args)

        verdict = op.compare(ref, acc)
        if verdict is None:
            self.report.passed += 1
            return CheckResult(ref, acc, True)

        detail, err = verdict
        context = op.report_mismatch(detail, *args)
        self.report.mismatches.append(Mismatch(op.name, context, detail, err))
        return CheckResult(ref, acc, False)


def _compare_values(ref: Tensor, acc: Tensor, tolerances) -> Optional[tuple[str, float]]:
    if ref.shape != acc.shape:
        return f"shape {acc.shape} != {ref.shape}", float("inf")
    rtol, atol = tolerance_for(ref.dtype, tolerances)
    if float_equal(ref.data, acc.data, rtol=rtol, atol=atol):
        return None
    err = max_abs_error(ref.data, acc.data)
    return f"max |ref-acc| = {err:.6g} (rtol={rtol}, atol={atol})", err


class ForwardPoolingCheck:
    """
    Forward pass comparison: values within tolerance, index maps exactly.
    """

    name = "forward"

    def __init__(self, reference, accelerated, config: PoolingConfig, tolerances=None):
        self.ref_executor = reference
        self.acc_executor = accelerated
        self.config = config
        self.tolerances = tolerances

    def reference(self, x: Tensor):
        return self.ref_executor.forward(x, self.config)

    def accelerated(self, x: Tensor):
        return self.acc_executor.forward(x, self.config)

    def compare(self, ref, acc) -> Optional[tuple[str, float]]:
        (y_ref, idx_ref), (y_acc, idx_acc) = ref, acc
        verdict = _compare_values(y_ref, y_acc, self.tolerances)
        if verdict is not None:
            return verdict
        if (idx_ref is None) != (idx_acc is None):
            return "index map present on one side only", float("inf")
        if idx_ref is not None and not np.array_equal(idx_ref, idx_acc):
            bad = int(np.count_nonzero(idx_ref != idx_acc))
            return f"{bad} index map entries differ", 0.0
        return None

    def report_mismatch(self, detail: str, x: Tensor) -> str:
        out_desc = self.config.get_forward_output_descriptor(x.desc)
        logger.error(
            "Forward pooling: %s\nInput tensor: %s\nOutput tensor: %s\n%s",
            self.config.describe(),
            x.desc.to_string(),
            out_desc.to_string(),
            detail,
        )
        return (
            f"{self.config.describe()} input=[{x.desc.to_string()}] "
            f"output=[{out_desc.to_string()}]"
        )


class BackwardPoolingCheck:
    """
    Backward pass comparison of input gradients within tolerance.
    """

    name = "backward"

    def __init__(self, reference, accelerated, config: PoolingConfig, tolerances=None):
        self.ref_executor = reference
        self.acc_executor = accelerated
        self.config = config
        self.tolerances = tolerances

    def reference(self, x, grad_output, y, indices):
        return self.ref_executor.backward(x, grad_output, y, self.config, indices)

    def accelerated(self, x, grad_output, y, indices):
        return self.acc_executor.backward(x, grad_output, y, self.config, indices)

    def compare(self, ref: Tensor, acc: Tensor) -> Optional[tuple[str, float]]:
        return _compare_values(ref, acc, self.tolerances)

    def report_mismatch(self, detail: str, x, grad_output, y, indices) -> str:
        logger.error(
            "Backward pooling: %s\nOutput tensor: %s\nInput tensor: %s\n%s",
            self.config.describe(),
            y.desc.to_string(),
            x.desc.to_string(),
            detail,
        )
        return (
            f"{self.config.describe()} output=[{y.desc.to_string()}] "
            f"input=[{x.desc.to_string()}]"
        )
