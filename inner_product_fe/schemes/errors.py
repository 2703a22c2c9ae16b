"""
Error kinds raised by the inner product functional encryption schemes.

Every failure aborts the operation that raised it. Callers tell the kinds
apart to decide between fixing the call, enlarging the recovery table and
reconfiguring dimensions.
"""


class IPFEError(Exception):
    """Base class for all scheme errors."""


class PreconditionViolation(IPFEError, ValueError):
    """Dimension mismatch, out-of-range scalar, invalid randomness or a
    malformed group element. Raised before any state is changed."""


class TableNotReady(IPFEError):
    """Decryption attempted before the discrete-log table was populated."""


class DlogNotFound(IPFEError):
    """The recovered group element is outside the populated table range."""

    def __init__(self, message, point_bytes=None):
        super().__init__(message)
        self.point_bytes = point_bytes


class SlotStateError(IPFEError):
    """A multi-input slot was used before initialization or initialized twice."""
