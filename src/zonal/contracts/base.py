"""Contract enforcement.

Every stage contract is a sequence of ``require()`` calls.
"""

from zonal.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Raise ``ContractViolation`` with ``message`` unless ``condition`` holds.

    Contracts guard invariants that a correct stage always establishes, so
    a failure points at pipeline code rather than at the input data. Input
    problems are reported with ``ZonalError`` subclasses instead.

    Examples
    --------
    >>> require(len(table) == len(store), "Result contract violated: row count")
    """
    if not condition:
        raise ContractViolation(message)
