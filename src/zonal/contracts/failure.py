"""Centralized failure types for the zonal pipeline.

Two families live here:

- Input/data errors (``FormatError``, ``CRSError``, ``OutOfBoundsError``,
  ``LoadTimeoutError``) describe problems with what the caller handed us.
  They are part of the public API and are meant to be caught.
- ``ContractViolation`` means a pipeline stage did not produce the invariants
  it promised. That is a bug, not bad input.
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """How a recoverable sampling failure is handled.

    AS_NODATA (default): out-of-bounds samples are treated as nodata and logged.
    FAIL_FAST: the OutOfBoundsError propagates to the caller.
    """
    AS_NODATA = "as_nodata"
    FAIL_FAST = "fail_fast"


class ZonalError(Exception):
    """Base class for all input/data errors raised by ``zonal``."""
    pass


class FormatError(ZonalError, ValueError):
    """Malformed or unsupported input. Fatal to the load step."""
    pass


class CRSError(ZonalError, ValueError):
    """Missing or incompatible coordinate reference systems.

    Both identifiers are kept on the exception so callers can report them.
    """

    def __init__(self, message: str, source_crs=None, target_crs=None):
        super().__init__(message)
        self.source_crs = source_crs
        self.target_crs = target_crs


class OutOfBoundsError(ZonalError, LookupError):
    """Coordinate lies outside a grid field's extent.

    Recoverable: distinct from a legitimate nodata cell.
    """

    def __init__(self, x: float, y: float, bounds=None):
        super().__init__(f"Coordinate ({x}, {y}) is outside field extent {bounds}")
        self.x = x
        self.y = y
        self.bounds = bounds


class LoadTimeoutError(ZonalError, TimeoutError):
    """A load step exceeded its caller-supplied time bound."""
    pass


class PipelineCancelled(ZonalError):
    """Raised between zone-level units of work after cancel() was requested."""
    pass


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input.

    Key distinction:
    - ValueError: User/config error (handled by Pydantic)
    - ZonalError: Bad or incompatible input data (caller's problem)
    - ContractViolation: Pipeline bug (programmer error)
    """
    pass
