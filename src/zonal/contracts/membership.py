"""Membership stage contract.

Enforces the guarantee that after the predicate engine, every zone has an
index set, indices are in range, and no sample belongs to two zones.
"""

import numpy as np
from zonal.contracts.base import require


def assert_membership(membership, zone_ids: list, n_samples: int) -> None:
    """Enforce membership stage contract.

    Parameters
    ----------
    membership : Membership
        Output from SpatialPredicateEngine.membership()

    zone_ids : list
        Zone ids in store order.

    n_samples : int
        Size of the sample set membership was computed against.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        list(membership.zone_ids) == list(zone_ids),
        "Membership contract violated: zones missing or out of order"
    )
    require(
        membership.n_samples == n_samples,
        f"Membership contract violated: {membership.n_samples} samples, expected {n_samples}"
    )

    assigned = membership.assigned()
    if len(assigned):
        require(
            assigned[0] >= 0 and assigned[-1] < n_samples,
            "Membership contract violated: sample index out of range"
        )
    require(
        len(np.unique(assigned)) == len(assigned),
        "Membership contract violated: a sample belongs to more than one zone"
    )
