"""Zone-level parallel map with cooperative cancellation.

Zones are independent units of work that read shared, immutable inputs and
each produce their own result, so a thread pool needs no locking. shapely 2
and numpy release the GIL for the heavy lifting.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

from zonal.contracts.failure import PipelineCancelled

__all__ = ['check_cancelled', 'map_zones']

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelled("Pipeline run cancelled")


def map_zones(func: Callable[[T], R], items: Iterable[T], max_workers: int = 1,
              cancel_event: Optional[threading.Event] = None) -> List[R]:
    """Apply ``func`` to every item, in order, checking for cancellation between items.

    Results come back in input order regardless of completion order. Once
    cancellation is seen, units that have not started raise immediately and
    the first ``PipelineCancelled`` propagates.
    """
    items = list(items)

    def _unit(item):
        check_cancelled(cancel_event)
        return func(item)

    if max_workers <= 1 or len(items) <= 1:
        return [_unit(item) for item in items]

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="zonal-zone") as executor:
        return list(executor.map(_unit, items))
