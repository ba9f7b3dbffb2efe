#!/usr/bin/env python3
# CUI // SP-CTI
"""shipline Resilience: Retry with exponential backoff.

Registry pushes and remote image pulls are the only stages that touch a
network the pipeline does not own, so they are the only callers. Exceptions
carrying ``retryable=False`` are re-raised immediately even when their type
is listed as retryable (a CommandError for a bad tag will not heal by waiting).

Usage:
    from shipline.resilience.retry import retry, call_with_retry

    @retry(max_retries=2, retryable_exceptions=(CommandError,))
    def push():
        ...

    call_with_retry(run_command, ["docker", "push", ref], max_retries=2)
"""

import functools
import logging
import random
import time
from typing import Callable, Optional, Sequence, Type

logger = logging.getLogger("shipline.resilience.retry")


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> float:
    """Exponential backoff with full jitter.

    min(cap, base * 2^attempt) * random(0.5, 1.0)
    """
    delay = min(max_delay, base_delay * (2 ** attempt))
    return delay * random.uniform(0.5, 1.0)


def _is_retryable(exc: BaseException) -> bool:
    return getattr(exc, "retryable", True) is not False


def retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: Sequence[Type[Exception]] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """Decorator that retries a function on transient failures.

    Args:
        max_retries: Maximum number of retry attempts (total calls = max_retries + 1).
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay cap in seconds.
        retryable_exceptions: Exception types that trigger a retry.
        on_retry: Optional callback(attempt, exc, delay) called before each retry.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            retryable = tuple(retryable_exceptions)

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable as exc:
                    if attempt >= max_retries or not _is_retryable(exc):
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay)
                    logger.warning(
                        "Retry %d/%d for %s (%s: %s), waiting %.1fs",
                        attempt + 1,
                        max_retries,
                        getattr(func, "__name__", "call"),
                        type(exc).__name__,
                        exc,
                        delay,
                    )
                    if on_retry:
                        on_retry(attempt, exc, delay)
                    time.sleep(delay)

        return wrapper

    return decorator


def call_with_retry(func: Callable, *args, max_retries: int = 3,
                    base_delay: float = 1.0, max_delay: float = 30.0,
                    retryable_exceptions: Sequence[Type[Exception]] = (Exception,),
                    **kwargs):
    """Imperative form of :func:`retry` for call sites with runtime retry counts."""
    wrapped = retry(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=max_delay,
        retryable_exceptions=retryable_exceptions,
    )(func)
    return wrapped(*args, **kwargs)
