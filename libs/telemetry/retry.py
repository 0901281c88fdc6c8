"""Bounded exponential-backoff retries for async operations.

Only transient failures are retried: network-level errors (timeouts, refused
or dropped connections, unresolved hosts) and HTTP 5xx/408/429. Anything else
propagates after the first attempt. When retries run out the last error is
re-raised as-is.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from libs.telemetry.config import RetryConfig
from libs.telemetry.exceptions import ApiError
from libs.telemetry.instrumentation import telemetry_client_retries_total

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

RETRYABLE_STATUS_CODES = frozenset({408, 429})

SleepFunc = Callable[[float], Awaitable[None]]


def _status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, ApiError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def _is_network_error(exc: BaseException) -> bool:
    if isinstance(exc, ApiError):
        return exc.is_network_error
    return isinstance(
        exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)
    )


def is_retryable_error(exc: BaseException) -> bool:
    """Return True if ``exc`` is a transient failure worth retrying.

    Transient:
        - network-level failures (httpx.TimeoutException, httpx.NetworkError,
          httpx.RemoteProtocolError for a dropped connection, or an ApiError
          normalized from one)
        - HTTP status >= 500, 408 (request timeout) or 429 (rate limited)

    Everything else, including other 4xx and payload errors, is permanent.
    """
    if _is_network_error(exc):
        return True
    status = _status_code_of(exc)
    if status is None:
        return False
    return status >= 500 or status in RETRYABLE_STATUS_CODES


def _retry_reason(exc: BaseException) -> str:
    if _is_network_error(exc):
        return "network"
    status = _status_code_of(exc)
    if status is not None and status >= 500:
        return "http_5xx"
    return f"http_{status}"


class RetryPolicy:
    """Run async operations under a RetryConfig.

    The delay before retry ``k`` (0-based) is
    ``retry_delay * backoff_multiplier ** k``, so with the defaults
    (3 retries, 1s, x2) a persistently failing call is attempted four times
    with sleeps of 1s, 2s and 4s in between.

    Args:
        config: Retry budget shared by every call made through this policy
        sleep: Awaitable sleep used between attempts (asyncio.sleep if None)

    Example:
        >>> policy = RetryPolicy(RetryConfig(max_retries=2, retry_delay=0.5))
        >>> body = await policy.execute(lambda: transport.fetch("/health/live"))
    """

    def __init__(self, config: RetryConfig | None = None, sleep: SleepFunc | None = None) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep

    def delay_for(self, attempt_index: int) -> float:
        """Backoff before the retry at ``attempt_index`` (0 = first retry)."""
        return self.config.retry_delay * self.config.backoff_multiplier**attempt_index

    async def execute(
        self,
        operation: Callable[[], Awaitable[_T]],
        retries_remaining: int | None = None,
        *,
        description: str = "operation",
    ) -> _T:
        """Await ``operation()``, retrying transient failures.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt
            retries_remaining: Retry budget for this call. Defaults to
                ``config.max_retries``; a smaller value resumes the backoff
                sequence where a caller left off.
            description: Label used in retry log lines

        Returns:
            The first successful result

        Raises:
            Exception: The error of the last attempt, unchanged
        """
        max_retries = self.config.max_retries
        remaining = max_retries if retries_remaining is None else max(0, retries_remaining)
        offset = max(0, max_retries - remaining)

        def wait(retry_state: RetryCallState) -> float:
            return self.delay_for(offset + retry_state.attempt_number - 1)

        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            reason = _retry_reason(exc) if exc is not None else "unknown"
            telemetry_client_retries_total.labels(reason=reason).inc()
            logger.warning(
                "Retrying %s in %.2fs after attempt %d failed: %s",
                description,
                delay,
                retry_state.attempt_number,
                exc,
                extra={"attempt": retry_state.attempt_number, "reason": reason},
            )

        retrying = AsyncRetrying(
            sleep=self._sleep or asyncio.sleep,
            stop=stop_after_attempt(remaining + 1),
            wait=wait,
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await operation()

        # Unreachable with reraise=True; keeps the return type total
        raise RuntimeError("Retry exhausted")
