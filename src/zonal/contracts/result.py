"""Result stage contract.

Enforces the guarantee that the result table has one row per zone, in zone
order, and that absent values are marked as such rather than as zeros.
"""

from zonal.contracts.base import require


def assert_result_table(table, zone_ids: list, statistics: list) -> None:
    """Enforce result stage contract.

    We do NOT re-check the statistics themselves; that is the
    aggregator's responsibility. Only structure and absence marking.

    Raises
    ------
    ContractViolation
        If structural requirements are violated
    """
    frame = table.to_frame()
    require(
        len(frame) == len(zone_ids),
        f"Result contract violated: {len(frame)} rows for {len(zone_ids)} zones"
    )
    require(
        frame["zone_id"].tolist() == list(zone_ids),
        "Result contract violated: rows are not in zone order"
    )
    for stat in statistics:
        require(
            stat in frame.columns,
            f"Result contract violated: missing statistic column '{stat}'"
        )
        if stat == "count":
            continue
        empty = (frame["count"] == 0).fillna(False).astype(bool)
        require(
            frame.loc[empty, stat].isna().all(),
            f"Result contract violated: '{stat}' has a value for a zone with no valid samples"
        )
