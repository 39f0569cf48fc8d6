from ._pooling_sweep import (
    DEFAULT_MODES,
    DEFAULT_POOLING_SWEEP,
    PoolingGeometry,
    pooling_configs,
    synthesize_gradient,
    verify_pooling,
    verify_pooling_shapes,
    within_index_range,
)
from ._tolerance import DEFAULT_TOLERANCES, float_equal, max_abs_error, tolerance_for
from ._verifier import (
    BackwardPoolingCheck,
    CheckResult,
    DifferentialVerifier,
    ForwardPoolingCheck,
    Mismatch,
    Skip,
    VerificationReport,
)
