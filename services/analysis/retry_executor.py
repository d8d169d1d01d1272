"""Timeout and retry policy for stage invocations.

Every attempt runs under its own timeout and its own cancellation handle.
Transient failures are retried with exponential backoff plus jitter; the
delay is always clamped to [MIN_DELAY_MS, max_delay_ms]. Validation-type
failures and user cancellation are never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from models.stage_io import BatchRequest
from services.analysis.cancellation import AbortReason, CancellationHandle
from services.analysis.errors import (
    AnalysisCancelledError,
    ExhaustedRetriesError,
    StageTimeoutError,
    classify_error,
    is_retryable,
)

LOGGER = logging.getLogger(__name__)

MIN_DELAY_MS = 1000
JITTER_FACTOR = 0.2

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings; `max_retries` counts retries after the first attempt."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10_000

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be positive")
        if self.max_delay_ms < MIN_DELAY_MS:
            raise ValueError(f"max_delay_ms must be at least {MIN_DELAY_MS}")


def compute_delay_ms(attempt: int, config: RetryConfig, random_value: float) -> float:
    """Return the backoff delay before the retry following `attempt`.

    Args:
        attempt: Zero-based index of the attempt that just failed.
        config: Retry configuration.
        random_value: A draw from [0, 1) used for jitter.
    """
    delay = min(config.base_delay_ms * (2 ** attempt), config.max_delay_ms)
    delay += delay * JITTER_FACTOR * (random_value - 0.5)
    return float(min(max(delay, MIN_DELAY_MS), config.max_delay_ms))


async def run_with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout_ms: int,
    handle: CancellationHandle,
    *,
    label: str = "stage",
) -> T:
    """Race one operation against a timer, honouring `handle` aborts.

    The operation runs as a task bound to `handle`; on timeout the handle is
    aborted, which cancels the task. A result that arrives after the handle
    was cancelled is discarded.
    """
    task = asyncio.ensure_future(operation())
    handle.bind(task)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not done:
        handle.abort(AbortReason.TIMEOUT)
        await asyncio.gather(task, return_exceptions=True)
        raise StageTimeoutError(f"{label} timed out after {timeout_ms}ms")

    if handle.cancelled or task.cancelled():
        raise AnalysisCancelledError()
    return task.result()


class RetryExecutor:
    """Run a stage invocation under the timeout/backoff policy."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[BatchRequest], Awaitable[T]],
        request: BatchRequest,
        *,
        session_handle: Optional[CancellationHandle] = None,
        label: str = "primary",
    ) -> T:
        """Invoke `operation` until it succeeds or the policy gives up.

        Raises:
            AnalysisCancelledError: The session was cancelled.
            ExhaustedRetriesError: Every allowed attempt failed, or the last
                allowed attempt was aborted by its timeout.
            AnalysisError: A non-retryable failure, raised on first sight.
        """
        last_error: Optional[BaseException] = None
        attempts = 0
        for attempt in range(self.config.max_retries + 1):
            if session_handle is not None:
                session_handle.raise_if_cancelled()
            attempts = attempt + 1
            attempt_request = request.for_attempt(attempt)
            handle = CancellationHandle(parent=session_handle, name=f"{label}#{attempt}")
            try:
                return await run_with_timeout(
                    lambda: operation(attempt_request), attempt_request.timeout_ms, handle, label=label
                )
            except AnalysisCancelledError:
                LOGGER.info("%s cancelled during attempt %d", label, attempts)
                raise
            except Exception as exc:
                last_error = exc
                is_last = attempt == self.config.max_retries
                if handle.aborted and is_last:
                    break
                if not is_retryable(exc):
                    LOGGER.warning(
                        "%s failed with non-retryable %s error: %s", label, classify_error(exc).value, exc
                    )
                    raise
                if is_last:
                    break
                delay_ms = compute_delay_ms(attempt, self.config, self._rng())
                LOGGER.warning(
                    "%s attempt %d/%d failed (%s: %s); retrying in %.0fms",
                    label,
                    attempts,
                    self.config.max_retries + 1,
                    classify_error(exc).value,
                    exc,
                    delay_ms,
                )
                await self._backoff(delay_ms / 1000, session_handle)
            finally:
                handle.release()

        LOGGER.error("%s exhausted %d attempt(s): %s", label, attempts, last_error)
        raise ExhaustedRetriesError(attempts, last_error)

    async def _backoff(self, seconds: float, session_handle: Optional[CancellationHandle]) -> None:
        if session_handle is None:
            await self._sleep(seconds)
            return
        handle = CancellationHandle(parent=session_handle, name="backoff")
        task = asyncio.ensure_future(self._sleep(seconds))
        handle.bind(task)
        try:
            await asyncio.gather(task, return_exceptions=True)
        finally:
            handle.release()
        handle.raise_if_cancelled()
