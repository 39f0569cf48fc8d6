"""
poolparity: 2D max/average pooling with a reference implementation, an
accelerated device implementation, and a differential verifier that proves
they agree.
"""

from .domain import (
    DeviceNotSupportedError,
    IndexIntegrityError,
    IndexRangeError,
    PoolingConfig,
    PoolingMode,
    PoolingPreconditionError,
    ShapeMismatchError,
    TensorDescriptor,
    VerificationError,
)
from .infrastructure.tensor import Tensor
from .infrastructure.ops.pool2d_cpu import backward_pooling, forward_pooling
from .infrastructure.backends import get_backend
from .infrastructure.pooling import AcceleratedExecutor, ReferenceExecutor
from .infrastructure.verify import (
    DifferentialVerifier,
    VerificationReport,
    pooling_configs,
    verify_pooling,
    verify_pooling_shapes,
)

__version__ = "0.1.0"
