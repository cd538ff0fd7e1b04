"""Bounded timeout and single-retry helper for network I/O.

Storage backends and the notifier wrap every remote call with
``call_with_retry`` so a transient failure (timeout, dropped connection,
throttling) is retried exactly once, while anything else propagates on the
first attempt.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

T = TypeVar("T")

DEFAULT_ATTEMPTS = 2
DEFAULT_WAIT_SECONDS = 0.5


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    is_transient: Callable[[BaseException], bool],
    attempts: int = DEFAULT_ATTEMPTS,
    wait: float = DEFAULT_WAIT_SECONDS,
) -> T:
    """Run ``operation`` under a timeout, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory.  Called once per attempt.
        timeout: Seconds allowed per attempt.  ``TimeoutError`` is always
            treated as transient.
        is_transient: Predicate deciding whether an exception is worth
            another attempt.
        attempts: Total attempts, including the first one.
        wait: Seconds to sleep between attempts.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        Exception: The last exception raised by ``operation`` once attempts
            are exhausted, or immediately for non-transient errors.
    """

    def _should_retry(exc: BaseException) -> bool:
        return isinstance(exc, TimeoutError) or is_transient(exc)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(wait),
        retry=retry_if_exception(_should_retry),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            async with asyncio.timeout(timeout):
                return await operation()
    raise AssertionError("unreachable")  # pragma: no cover
