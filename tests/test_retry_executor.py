"""Tests for services/analysis/retry_executor.py"""

import asyncio

import pytest

from models.stage_io import BatchRequest
from services.analysis.cancellation import CancellationHandle
from services.analysis.errors import (
    AnalysisCancelledError,
    ErrorKind,
    ExhaustedRetriesError,
    StageTimeoutError,
    TransientStageError,
    ValidationError,
)
from services.analysis.retry_executor import (
    RetryConfig,
    RetryExecutor,
    compute_delay_ms,
    run_with_timeout,
)


def _request(timeout_ms=1000):
    return BatchRequest(image_urls=("https://example.com/a.png",), analysis_id="s1", analysis_prompt="p",
                        timeout_ms=timeout_ms)


class TestComputeDelay:
    @pytest.mark.parametrize("attempt", range(0, 12))
    @pytest.mark.parametrize("random_value", [0.0, 0.25, 0.5, 0.999])
    def test_always_within_bounds(self, attempt, random_value):
        config = RetryConfig(max_retries=3, base_delay_ms=1000, max_delay_ms=10_000)
        delay = compute_delay_ms(attempt, config, random_value)
        assert 1000 <= delay <= 10_000

    def test_exponential_without_jitter(self):
        config = RetryConfig()
        assert compute_delay_ms(0, config, 0.5) == 1000
        assert compute_delay_ms(1, config, 0.5) == 2000
        assert compute_delay_ms(3, config, 0.5) == 8000
        assert compute_delay_ms(6, config, 0.5) == 10_000

    def test_small_base_is_raised_to_floor(self):
        config = RetryConfig(base_delay_ms=100)
        assert compute_delay_ms(0, config, 0.0) == 1000


class TestRetryConfig:
    def test_rejects_max_below_floor(self):
        with pytest.raises(ValueError):
            RetryConfig(max_delay_ms=500)

    def test_rejects_negative_retries(self):
        with pytest.raises(ValueError):
            RetryConfig(max_retries=-1)


class TestRetryExecutor:
    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        attempts_seen = []

        async def operation(request):
            attempts_seen.append(request.attempt)
            if len(attempts_seen) < 3:
                raise TransientStageError("upstream 503")
            return "ok"

        executor = RetryExecutor(RetryConfig(max_retries=3), sleep=fake_sleep, rng=lambda: 0.5)
        assert await executor.execute(operation, _request()) == "ok"
        assert attempts_seen == [0, 1, 2]
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_runs_once(self):
        calls = []

        async def operation(request):
            calls.append(request)
            raise ValidationError("Invalid image payload")

        executor = RetryExecutor(RetryConfig(max_retries=3), sleep=lambda s: asyncio.sleep(0))
        with pytest.raises(ValidationError):
            await executor.execute(operation, _request())
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_exhaustion_reports_attempts_and_kind(self):
        calls = []

        async def operation(request):
            calls.append(request)
            raise TransientStageError("still down")

        executor = RetryExecutor(RetryConfig(max_retries=2), sleep=lambda s: asyncio.sleep(0), rng=lambda: 0.5)
        with pytest.raises(ExhaustedRetriesError) as excinfo:
            await executor.execute(operation, _request())
        assert len(calls) == 3
        assert excinfo.value.attempts == 3
        assert excinfo.value.kind == ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_timeout_on_last_attempt(self):
        async def operation(request):
            await asyncio.sleep(10)

        executor = RetryExecutor(RetryConfig(max_retries=0))
        with pytest.raises(ExhaustedRetriesError) as excinfo:
            await executor.execute(operation, _request(timeout_ms=20))
        assert excinfo.value.kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_session_cancel_stops_attempt(self):
        started = asyncio.Event()
        calls = []

        async def operation(request):
            calls.append(request)
            started.set()
            await asyncio.sleep(10)

        session = CancellationHandle(name="session")
        executor = RetryExecutor(RetryConfig(max_retries=3))
        task = asyncio.ensure_future(executor.execute(operation, _request(timeout_ms=5000), session_handle=session))
        await started.wait()
        session.abort()
        with pytest.raises(AnalysisCancelledError):
            await task
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_already_cancelled_session_never_calls(self):
        calls = []

        async def operation(request):
            calls.append(request)

        session = CancellationHandle()
        session.abort()
        with pytest.raises(AnalysisCancelledError):
            await RetryExecutor().execute(operation, _request(), session_handle=session)
        assert calls == []

    @pytest.mark.asyncio
    async def test_each_attempt_gets_its_own_request(self):
        seen = []

        async def operation(request):
            seen.append(request)
            if len(seen) == 1:
                raise TransientStageError("blip")
            return request.attempt

        original = _request()
        executor = RetryExecutor(sleep=lambda s: asyncio.sleep(0))
        assert await executor.execute(operation, original) == 1
        assert original.attempt == 0
        assert seen[0] is not seen[1]


class TestRunWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def operation():
            return 42

        assert await run_with_timeout(operation, 1000, CancellationHandle()) == 42

    @pytest.mark.asyncio
    async def test_timeout_aborts_handle(self):
        async def operation():
            await asyncio.sleep(10)

        handle = CancellationHandle()
        with pytest.raises(StageTimeoutError):
            await run_with_timeout(operation, 20, handle, label="vision")
        assert handle.aborted
        assert not handle.cancelled
