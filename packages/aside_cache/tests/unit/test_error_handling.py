"""Unit tests for retry and timeout helpers."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from aside_cache.application.error_handling import (
    RetryConfig,
    RetryStrategy,
    calculate_retry_delay,
    with_retry,
    with_timeout,
)
from aside_cache.domain.exceptions import OperationTimeoutError


class TestCalculateRetryDelay:
    """Test delay calculation."""

    @pytest.mark.parametrize(
        ("strategy", "attempt", "expected"),
        [
            (RetryStrategy.CONSTANT, 3, 0.5),
            (RetryStrategy.LINEAR, 3, 1.5),
            (RetryStrategy.EXPONENTIAL, 1, 0.5),
            (RetryStrategy.EXPONENTIAL, 3, 2.0),
        ],
    )
    def test_strategies(self, strategy: RetryStrategy, attempt: int, expected: float) -> None:
        config = RetryConfig(initial_delay=0.5, strategy=strategy, jitter=False)

        assert calculate_retry_delay(attempt, config) == expected

    def test_capped_at_max_delay(self) -> None:
        config = RetryConfig(initial_delay=1, max_delay=3, jitter=False)

        assert calculate_retry_delay(10, config) == 3

    def test_jitter_stays_within_ten_percent(self) -> None:
        config = RetryConfig(initial_delay=1, strategy=RetryStrategy.CONSTANT, jitter=True)

        for _ in range(50):
            assert 0.9 <= calculate_retry_delay(1, config) <= 1.1


class FlakySource:
    """Async loader failing a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    async def load(self, key: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return f"value-{key}"


class TestWithRetry:
    """Test the retry decorator."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        source = FlakySource(failures=2, error=ConnectionError("reset"))

        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            wrapped = with_retry(RetryConfig(max_attempts=3, jitter=False))(source.load)
            assert await wrapped("k") == "value-k"

        assert source.calls == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        source = FlakySource(failures=5, error=ConnectionError("down"))

        with patch("asyncio.sleep", new=AsyncMock()):
            wrapped = with_retry(RetryConfig(max_attempts=2))(source.load)
            with pytest.raises(ConnectionError):
                await wrapped("k")

        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self) -> None:
        source = FlakySource(failures=1, error=KeyError("k"))

        wrapped = with_retry()(source.load)
        with pytest.raises(KeyError):
            await wrapped("k")

        assert source.calls == 1

    def test_rejects_sync_functions(self) -> None:
        def load(key: str) -> str:
            return key

        with pytest.raises(TypeError, match="async"):
            with_retry()(load)

    def test_preserves_metadata(self) -> None:
        async def load(key: str) -> str:
            """Load a key."""
            return key

        wrapped = with_retry()(load)

        assert wrapped.__name__ == "load"
        assert wrapped.__doc__ == "Load a key."


class TestWithTimeout:
    """Test the timeout helper."""

    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        async def quick() -> int:
            return 1

        assert await with_timeout(quick(), 1.0) == 1

    @pytest.mark.asyncio
    async def test_raises_operation_timeout(self) -> None:
        with pytest.raises(OperationTimeoutError) as exc_info:
            await with_timeout(asyncio.sleep(1), 0.01, operation_name="slow")

        assert exc_info.value.details["operation"] == "slow"
        assert exc_info.value.details["timeout_seconds"] == 0.01
