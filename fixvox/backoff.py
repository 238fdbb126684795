from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from .exceptions import RetriesExhausted

T = TypeVar("T")

SHORT_DELAY_MIN_MS = 10
SHORT_DELAY_JITTER_MS = 64

_rng = random.SystemRandom()


def short_delay() -> float:
    """Seconds to wait before the next attempt: 10ms plus up to 63ms of jitter."""
    return (SHORT_DELAY_MIN_MS + _rng.randrange(SHORT_DELAY_JITTER_MS)) / 1000.0


def retry(
    operation: Callable[[int], T],
    *,
    attempts: int,
    description: str,
    retry_on: Tuple[Type[BaseException], ...] = (OSError,),
    exhausted: Type[RetriesExhausted] = RetriesExhausted,
    delay: Callable[[], float] = short_delay,
    logger: Optional[logging.Logger] = None,
) -> T:
    """
    Call `operation(attempt)` until it returns, at most `attempts` times.

    Exceptions listed in `retry_on` are treated as transient: they are logged,
    followed by a `delay()` pause, and the call is repeated. Once every attempt
    has failed, `exhausted` is raised, chained from the last failure. Other
    exceptions propagate immediately.
    """
    last: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return operation(attempt)
        except retry_on as e:
            last = e
            if logger is not None:
                logger.debug(
                    "%s: attempt %d/%d failed: %s", description, attempt, attempts, e
                )
        if attempt < attempts:
            time.sleep(delay())
    raise exhausted(description, attempts) from last
