from ._errors import (
    DeviceNotSupportedError,
    IndexIntegrityError,
    IndexRangeError,
    PoolingPreconditionError,
    ShapeMismatchError,
    VerificationError,
)
from ._pooling import IPoolingExecutor, PoolingConfig, PoolingMode
from ._tensor import TensorDescriptor
