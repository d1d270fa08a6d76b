"""Bounded retry loop with exponential backoff.

Stateless across calls: each logical call gets at most ``retries + 1``
attempts.  Only ``ApiError`` failures are considered for a retry; any
other exception propagates immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from declient._async import maybe_await
from declient.core.errors import ApiError
from declient.models.policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, ApiError], Any]


class RetryExecutor:
    """Runs an attempt function under a ``RetryPolicy``.

    Args:
        policy: Attempt budget, retry predicate and backoff schedule.
        sleep:  Delay primitive, ``asyncio.sleep`` unless overridden.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.policy = policy
        self._sleep = sleep

    async def should_retry(self, error: ApiError, retry_count: int) -> bool:
        """Decide whether *error* warrants another attempt.

        *retry_count* is the number of retries already made (0-based).
        """
        if self.policy.should_retry is not None:
            return bool(await maybe_await(self.policy.should_retry(error, retry_count)))
        if error.response is None:
            return self.policy.retry_on_network_error is not False
        return error.response.status in self.policy.retryable_status_codes

    def compute_delay(self, retry_count: int, error: ApiError) -> float:
        """Seconds to wait before retry number ``retry_count + 1``.

        The exponent is that 1-based retry number, as passed to
        ``retry_delay_fn``: the first retry waits ``retry_delay * multiplier``.
        """
        policy = self.policy
        if policy.retry_delay_fn is not None:
            return policy.retry_delay_fn(retry_count + 1, error)
        if policy.exponential_backoff is False:
            return policy.retry_delay
        multiplier = 2.0 if policy.exponential_backoff is True else float(policy.exponential_backoff)
        return min(policy.retry_delay * multiplier ** (retry_count + 1), policy.retry_delay_max)

    async def run(
        self,
        attempt: Callable[[], Awaitable[T]],
        *,
        label: str = "request",
        on_retry: RetryHook | None = None,
    ) -> T:
        """Call *attempt* until it succeeds or the policy gives up.

        Raises:
            ApiError: The last failure once retries are exhausted or the
                      predicate declines to retry.
        """
        attempts = self.policy.retries + 1
        retry_count = 0
        while True:
            try:
                return await attempt()
            except ApiError as exc:
                if retry_count + 1 >= attempts or not await self.should_retry(exc, retry_count):
                    raise
                delay = self.compute_delay(retry_count, exc)
                retry_count += 1
                logger.warning(
                    "%s for %s (attempt %d/%d), retrying in %.2fs",
                    _describe(exc),
                    label,
                    retry_count,
                    attempts,
                    delay,
                )
                if on_retry is not None:
                    await _notify(on_retry, retry_count, exc)
                await self._sleep(delay)


def _describe(error: ApiError) -> str:
    if error.response is None:
        return f"Network error ({error.code or error.message})"
    return f"Status {error.response.status}"


async def _notify(hook: RetryHook, retry_count: int, error: ApiError) -> None:
    """Invoke the retry hook; it observes retries and cannot stop them."""
    try:
        await maybe_await(hook(retry_count, error))
    except Exception:
        logger.exception("Retry hook %r raised; continuing with retry", hook)
