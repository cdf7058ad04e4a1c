#!/usr/bin/env python3
"""
Retry Logic Tests
================

Tests for backoff curves and the retry loop.
"""

import pytest
from unittest.mock import AsyncMock

from coreheadlines.recovery.retry_logic import RetryManager, RetryPolicy, RetryStrategy


class TestRetryPolicy:

    def test_exponential_delays(self):
        policy = RetryPolicy(strategy=RetryStrategy.EXPONENTIAL_BACKOFF, base_delay=0.5)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_linear_delays(self):
        policy = RetryPolicy(strategy=RetryStrategy.LINEAR_BACKOFF, base_delay=1.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_fixed_and_none(self):
        assert RetryPolicy(strategy=RetryStrategy.FIXED_DELAY, base_delay=2.0).delay_for(5) == 2.0
        assert RetryPolicy(strategy=RetryStrategy.NONE, base_delay=2.0).delay_for(5) == 0.0

    def test_delay_capped(self):
        policy = RetryPolicy(base_delay=10.0, max_delay=15.0)
        assert policy.delay_for(4) == 15.0


class TestRetryManager:

    @pytest.mark.asyncio
    async def test_succeeds_after_retryable_failures(self):
        sleep = AsyncMock()
        manager = RetryManager(sleep=sleep)
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        policy = RetryPolicy(max_attempts=3, base_delay=0.5)

        result = await manager.retry_async(func, "arg", policy=policy, operation="test")

        assert result == "ok"
        assert func.await_count == 3
        func.assert_awaited_with("arg")
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        manager = RetryManager(sleep=AsyncMock())
        func = AsyncMock(side_effect=[ConnectionError("first"), ConnectionError("second")])

        with pytest.raises(ConnectionError, match="second"):
            await manager.retry_async(func, policy=RetryPolicy(max_attempts=2))

        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self):
        sleep = AsyncMock()
        manager = RetryManager(sleep=sleep)
        func = AsyncMock(side_effect=ValueError("bad input"))
        policy = RetryPolicy(
            max_attempts=3, retry_on=lambda exc: isinstance(exc, ConnectionError)
        )

        with pytest.raises(ValueError):
            await manager.retry_async(func, policy=policy)

        assert func.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_plain_callables_supported(self):
        manager = RetryManager(sleep=AsyncMock())
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 2:
                raise ConnectionError("once")
            return len(calls)

        assert await manager.retry_async(flaky, policy=RetryPolicy(max_attempts=2)) == 2

    @pytest.mark.asyncio
    async def test_no_sleep_for_zero_delay(self):
        sleep = AsyncMock()
        manager = RetryManager(sleep=sleep)
        func = AsyncMock(side_effect=[ConnectionError("x"), "ok"])

        await manager.retry_async(
            func, policy=RetryPolicy(max_attempts=2, strategy=RetryStrategy.NONE)
        )

        sleep.assert_not_awaited()
