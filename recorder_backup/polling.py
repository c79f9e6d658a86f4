"""
Bounded polling helper.

Every wait in the tool (windows, controls, modals, volumes, subprocesses)
has the same shape: check a predicate every N seconds until it yields
something truthy or the deadline passes.
"""
import time
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def wait_until(predicate: Callable[[], Optional[T]],
               timeout: float,
               interval: float,
               clock: Callable[[], float] = time.monotonic,
               sleep: Callable[[float], None] = time.sleep) -> Optional[T]:
    """
    Calls `predicate` until it returns a truthy value or `timeout` elapses.

    The predicate is always evaluated at least once, and once more right at
    the deadline so a condition that becomes true during the last sleep is
    not missed.

    Returns:
        The first truthy predicate result, or None on timeout.
    """
    deadline = clock() + max(0.0, timeout)
    while True:
        result = predicate()
        if result:
            return result
        remaining = deadline - clock()
        if remaining <= 0:
            return None
        sleep(min(interval, remaining))
