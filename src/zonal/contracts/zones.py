"""Zone stage contract.

Enforces the guarantee that after loading (and reprojection), the zones are
a usable collection: unique ids, no empty geometry. CRS agreement with the
field is not a contract; the predicate engine raises ``CRSError`` for it.
"""

from zonal.contracts.base import require


def assert_zones_ready(store) -> None:
    """Enforce zone stage contract.

    Called after the zones have been brought into the field CRS.

    Parameters
    ----------
    store : GeometryStore
        Zones as they will be handed to the predicate engine.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    ids = store.ids
    require(
        len(set(ids)) == len(ids),
        "Zone contract violated: zone ids are not unique"
    )

    require(
        all(not g.is_empty for g in store.geometries),
        "Zone contract violated: empty geometry after reprojection"
    )
