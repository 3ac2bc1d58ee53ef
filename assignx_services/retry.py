"""
Re-read-and-retry for transient conflicts.

A ConcurrencyError means another writer got there first.  Each operation of
the lifecycle facade rolls back and re-reads on the next call, so retrying
the whole operation is safe.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from assignx_kernel.exceptions import ConcurrencyError
from assignx_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def retry_on_conflict(
    fn: Callable[[], T],
    attempts: int = 3,
    backoff: float = 0.05,
    retry_on: tuple[type[BaseException], ...] = (ConcurrencyError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds or ``attempts`` are used up.

    Waits ``backoff * attempt`` seconds between tries.  The last error is
    re-raised unchanged.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt == attempts:
                logger.warning(
                    "retry_exhausted",
                    extra={"attempts": attempts, "error_code": getattr(exc, "code", None)},
                )
                raise
            logger.info(
                "retry_after_conflict",
                extra={"attempt": attempt, "error_code": getattr(exc, "code", None)},
            )
            sleep(backoff * attempt)
    raise AssertionError("unreachable")
