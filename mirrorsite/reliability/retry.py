"""
Retry - Bounded fixed-delay retry for a single operation.

Each call gets its own attempt counter, so clone and pull never share
a budget. The loop is explicit (no recursion) and the sleep function
is injectable for tests.

## Usage

    from mirrorsite.reliability.retry import retry_with_policy

    retry_with_policy(
        lambda: git_pull(),
        policy,
        operation="pull",
        retryable=(NetworkFailure, CommandTimeout),
    )
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Tuple, Type

from ..models.config import RetryPolicy

logger = logging.getLogger(__name__)


def retry_with_policy(
    func: Callable[[], Any],
    policy: RetryPolicy,
    operation: str = "operation",
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    log: Optional[logging.Logger] = None,
) -> Any:
    """
    Call ``func`` up to ``policy.max_retries`` times.

    Non-retryable exceptions propagate immediately. The delay is applied
    between attempts only, never after the last one.

    Returns:
        Result of the first successful call.

    Raises:
        The last retryable exception once the budget is spent.
    """
    log = log or logger
    attempts = policy.max_retries

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retryable as e:
            if attempt == attempts:
                log.error(f"{operation}: all {attempts} attempts failed: {e}")
                raise

            log.warning(
                f"{operation}: attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {policy.retry_delay:.1f}s..."
            )
            sleep(policy.retry_delay)

    raise RuntimeError("Unexpected retry loop exit")
