"""Bounded execution for load steps.

File/format loading is the only place the pipeline can block. Each load runs
in a worker thread and the caller waits at most ``timeout`` seconds.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

from zonal.contracts.failure import LoadTimeoutError

__all__ = ['run_with_timeout']

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_timeout(func: Callable[..., T], *args, timeout: Optional[float] = None,
                     description: str = "load", **kwargs) -> T:
    """Call ``func(*args, **kwargs)``, giving up after ``timeout`` seconds.

    With ``timeout=None`` the call runs inline with no bound.

    Raises
    ------
    LoadTimeoutError
        If the call did not finish in time. The worker thread is abandoned
        (Python threads cannot be killed); its result is discarded.
    """
    if timeout is None:
        return func(*args, **kwargs)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="zonal-load")
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.error("%s exceeded %.1f s timeout", description, timeout)
        raise LoadTimeoutError(f"{description} did not finish within {timeout} s") from None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
