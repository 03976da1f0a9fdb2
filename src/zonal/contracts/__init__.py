"""Pipeline contracts: fail-fast enforcement of stage invariants.

This package enforces semantic guarantees between pipeline stages.
Contracts fail immediately and loudly when a stage does not produce its
promised invariants. A violation is a pipeline bug, not a data problem;
data problems raise the ``ZonalError`` family instead.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- Readers and the engine handle data edge cases
"""

from zonal.contracts.failure import (
    ContractViolation,
    CRSError,
    FailurePolicy,
    FormatError,
    LoadTimeoutError,
    OutOfBoundsError,
    PipelineCancelled,
    ZonalError,
)
from zonal.contracts.base import require
from zonal.contracts.zones import assert_zones_ready
from zonal.contracts.field import assert_field_ready
from zonal.contracts.membership import assert_membership
from zonal.contracts.result import assert_result_table

__all__ = [
    "ContractViolation",
    "CRSError",
    "FailurePolicy",
    "FormatError",
    "LoadTimeoutError",
    "OutOfBoundsError",
    "PipelineCancelled",
    "ZonalError",
    "require",
    "assert_zones_ready",
    "assert_field_ready",
    "assert_membership",
    "assert_result_table",
]
