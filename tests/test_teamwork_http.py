"""
Tests for the async retry helpers.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from scopesync.core.teamwork.http import (
    RetryConfig,
    is_retryable_error,
    retry_async,
    with_retry,
)


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://acme.teamwork.com/projects.json")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestRetryConfig:
    """Test RetryConfig validation and delays."""

    def test_defaults(self):
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.multiplier == 2.0
        assert config.jitter_ratio == 0.2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": -1},
            {"base_delay": 0},
            {"multiplier": 0.5},
            {"jitter_ratio": 1.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        """Test out-of-range settings are rejected."""
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)

    def test_exponential_without_jitter(self):
        """Test delays double per attempt when jitter is disabled."""
        config = RetryConfig(base_delay=1.0, multiplier=2.0, jitter_ratio=0.0)
        assert [config.calculate_delay(i) for i in range(3)] == [1.0, 2.0, 4.0]

    def test_jitter_bounds(self):
        """Test jitter stays within the configured ratio."""
        config = RetryConfig(base_delay=1.0, jitter_ratio=0.2)
        for _ in range(50):
            assert 0.8 <= config.calculate_delay(0) <= 1.2


class TestIsRetryableError:
    """Test classification of failures."""

    def test_server_errors_retryable(self):
        assert is_retryable_error(_status_error(500))
        assert is_retryable_error(_status_error(503))

    def test_client_errors_not_retryable(self):
        """Test a rejected token (401) or missing task (404) fails fast."""
        assert not is_retryable_error(_status_error(401))
        assert not is_retryable_error(_status_error(404))

    def test_transport_errors_retryable(self):
        assert is_retryable_error(httpx.ConnectError("refused"))
        assert is_retryable_error(httpx.ReadTimeout("slow"))

    def test_other_errors_not_retryable(self):
        assert not is_retryable_error(ValueError("bad json"))


class TestRetryAsync:
    """Test retry_async and the with_retry decorator."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        result = await retry_async(func, RetryConfig(), "a", key="b")
        assert result == "ok"
        func.assert_awaited_once_with("a", key="b")

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        """Test transient failures are retried with backoff sleeps."""
        func = AsyncMock(side_effect=[_status_error(502), httpx.ConnectError("x"), "ok"])
        with patch("scopesync.core.teamwork.http.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_async(func, RetryConfig(max_retries=3, jitter_ratio=0.0))

        assert result == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        func = AsyncMock(side_effect=_status_error(401))
        with pytest.raises(httpx.HTTPStatusError):
            await retry_async(func, RetryConfig())
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        """Test the last error is raised once retries are exhausted."""
        func = AsyncMock(side_effect=_status_error(500))
        with patch("scopesync.core.teamwork.http.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.HTTPStatusError):
                await retry_async(func, RetryConfig(max_retries=2))
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_decorator(self):
        """Test with_retry wraps a coroutine function."""
        attempts = []

        @with_retry(max_retries=1, base_delay=0.001)
        async def flaky() -> str:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("slow")
            return "done"

        assert await flaky() == "done"
        assert len(attempts) == 2
        assert flaky.__name__ == "flaky"
