"""Field stage contract.

Enforces the guarantee that a loaded field can be sampled.
"""

import numpy as np
from zonal.contracts.base import require


def assert_field_ready(field) -> None:
    """Enforce field stage contract.

    Called immediately after loading. Works for grids (``values``, ``rows``,
    ``cols``) and point fields (``observations``).

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(bool(field.crs), "Field contract violated: field has no CRS")

    if hasattr(field, "values") and isinstance(field.values, np.ndarray):
        values = field.values
        require(
            values.ndim in (2, 3),
            f"Field contract violated: grid values have {values.ndim} dims, expected 2 or 3"
        )
        require(
            values.shape[-2:] == (field.rows, field.cols),
            f"Field contract violated: values shape {values.shape} vs rows/cols {(field.rows, field.cols)}"
        )
        require(
            not values.flags.writeable,
            "Field contract violated: grid values must be read-only"
        )
    else:
        require(
            field.n_samples == len(field.observations),
            "Field contract violated: sample count does not match observations"
        )
