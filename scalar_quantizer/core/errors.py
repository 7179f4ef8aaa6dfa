"""
Error taxonomy for scalar quantization.

Every condition here is a caller precondition violation. They are raised
synchronously, before any work is issued to an execution backend, and are
never retried or recovered from internally.
"""


class QuantizationError(ValueError):
    """Base class for all scalar quantization precondition failures."""


class InvalidParameter(QuantizationError):
    """A quantization parameter (e.g. quantile) is outside its valid domain."""


class EmptyInput(QuantizationError):
    """A dataset has zero rows, zero columns, or no finite values to train on."""


class NotTrained(QuantizationError):
    """A transform was requested from a quantizer that has not been trained."""


class ShapeMismatch(QuantizationError):
    """A dataset is not 2-D, or an output buffer does not match the input shape."""


class DTypeMismatch(QuantizationError, TypeError):
    """A dataset or output buffer has an element type the operation cannot use."""


class PlacementMismatch(QuantizationError):
    """A tensor lives on a different device than the execution resources."""
