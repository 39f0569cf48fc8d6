"""
Pooling- and device-related exceptions for poolparity.

This module defines the error taxonomy used by the pooling kernels, the
executors and the differential verifier:

- **Precondition violations** (`PoolingPreconditionError` and subclasses)
  signal a caller defect or corrupted intermediate state. They are fatal for
  the current verification case and must never be swallowed.
- **Verification failures** (`VerificationError`) are raised only after a
  whole sweep has been evaluated, when at least one reference/accelerated
  comparison disagreed.
- **Device errors** (`DeviceNotSupportedError`) signal a request for an
  accelerator backend that does not exist.
"""


class PoolingPreconditionError(RuntimeError):
    """
    Base class for fatal pooling precondition violations.

    Raised when continuing would validate against corrupted data, e.g. a
    gradient tensor whose shape does not match the forward output, or an
    index map that does not point back at the forward maximum.
    """


class ShapeMismatchError(PoolingPreconditionError):
    """
    Raised when two tensors that must share a descriptor do not.

    Attributes
    ----------
    expected : str
        Diagnostic string of the expected descriptor.
    actual : str
        Diagnostic string of the received descriptor.
    """

    def __init__(self, what: str, expected: str, actual: str) -> None:
        """
        Initialize the ShapeMismatchError.

        Parameters
        ----------
        what : str
            Name of the offending operand (e.g., "grad_output").
        expected : str
            Expected descriptor, rendered via `TensorDescriptor.to_string()`.
        actual : str
            Actual descriptor, rendered the same way.
        """
        super().__init__(f"{what} shape mismatch: expected {expected}, got {actual}.")
        self.expected = expected
        self.actual = actual


class IndexIntegrityError(PoolingPreconditionError):
    """
    Raised when a decoded max-pooling index does not reproduce the forward
    output value at the same output cell.
    """

    def __init__(
        self, cell: tuple[int, int, int, int], offset: int, got: float, expected: float
    ) -> None:
        n, c, i, j = cell
        super().__init__(
            f"Max index self-check failed at output ({n}, {c}, {i}, {j}): "
            f"offset {offset} holds {got!r}, forward output is {expected!r}."
        )
        self.cell = cell
        self.offset = offset


class IndexRangeError(PoolingPreconditionError):
    """
    Raised when an input plane is too large for the 16-bit index map.
    """

    def __init__(self, plane_size: int, limit: int) -> None:
        super().__init__(
            f"Input plane of {plane_size} elements exceeds the index map range "
            f"({limit})."
        )
        self.plane_size = plane_size
        self.limit = limit


class VerificationError(AssertionError):
    """
    Raised when a differential verification sweep recorded mismatches.

    Attributes
    ----------
    mismatches : list
        The `Mismatch` records collected during the sweep.
    """

    def __init__(self, mismatches: list) -> None:
        lines = "\n".join(f"- {m}" for m in mismatches)
        super().__init__(
            f"{len(mismatches)} pooling case(s) disagreed between implementations:\n"
            f"{lines}"
        )
        self.mismatches = list(mismatches)


class DeviceNotSupportedError(RuntimeError):
    """
    Raised when an accelerator backend is requested for a device string that
    has no implementation.

    Attributes
    ----------
    op : str
        The name of the operation that was attempted.
    device : str
        String representation of the requested device.
    """

    def __init__(self, op: str, device: str) -> None:
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device
