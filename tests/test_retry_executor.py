"""Tests for the retry executor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from errorwise.core.exceptions import ProviderCallError, ProviderTimeoutError
from errorwise.orchestrator.retry_executor import RetryExecutor, RetryPolicy, is_retryable
from errorwise.orchestrator.types import ProviderReply

REPLY = ProviderReply(text="{}", model="m")


class TestBackoff:
    def test_exponential(self):
        assert RetryExecutor.calculate_backoff(1, base_delay=1.0) == 1.0
        assert RetryExecutor.calculate_backoff(2, base_delay=1.0) == 2.0
        assert RetryExecutor.calculate_backoff(3, base_delay=1.0) == 4.0

    def test_capped(self):
        assert RetryExecutor.calculate_backoff(10, base_delay=1.0, max_delay=30.0) == 30.0


class TestIsRetryable:
    def test_classification(self):
        assert is_retryable(ProviderTimeoutError("p", 30))
        assert is_retryable(ProviderCallError.from_status("p", 429))
        assert is_retryable(ProviderCallError.from_status("p", 503))
        assert not is_retryable(ProviderCallError.from_status("p", 401))
        assert not is_retryable(ProviderCallError.from_status("p", 400))
        assert not is_retryable(ValueError("bug"))


class TestRun:
    @pytest.mark.asyncio
    async def test_success_first_try(self, recording_sleep):
        executor = RetryExecutor(sleep=recording_sleep)
        fn = AsyncMock(return_value=REPLY)

        assert await executor.run(fn, provider="p") is REPLY
        assert fn.await_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, recording_sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay=1.0), sleep=recording_sleep)
        fn = AsyncMock(
            side_effect=[
                ProviderCallError.from_status("p", 503),
                ProviderTimeoutError("p", 30),
                REPLY,
            ]
        )

        assert await executor.run(fn, provider="p") is REPLY
        assert fn.await_count == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, recording_sleep):
        executor = RetryExecutor(sleep=recording_sleep)
        fn = AsyncMock(side_effect=ProviderCallError.from_status("p", 401, "bad key"))

        with pytest.raises(ProviderCallError) as exc_info:
            await executor.run(fn, provider="p")
        assert exc_info.value.http_status == 401
        assert fn.await_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self, recording_sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=3), sleep=recording_sleep)
        errors = [ProviderCallError.from_status("p", 500), ProviderCallError.from_status("p", 502), ProviderCallError.from_status("p", 503)]
        fn = AsyncMock(side_effect=errors)

        with pytest.raises(ProviderCallError) as exc_info:
            await executor.run(fn, provider="p")
        assert exc_info.value is errors[-1]
        assert fn.await_count == 3
        assert len(recording_sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, recording_sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=2, timeout=0.01), sleep=recording_sleep)
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await asyncio.sleep(1)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await executor.run(slow, provider="slow-provider")
        assert exc_info.value.provider == "slow-provider"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self, recording_sleep):
        executor = RetryExecutor(sleep=recording_sleep)
        fn = AsyncMock(side_effect=KeyError("choices"))

        with pytest.raises(KeyError):
            await executor.run(fn, provider="p")
        assert fn.await_count == 1
