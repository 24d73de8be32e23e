"""Unit tests for transport error classification and retry."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from wordware_mcp.infra.error_handler import (
    APIError,
    AuthError,
    ErrorCategory,
    NetworkError,
    RateLimitError,
    retry_with_backoff,
    wrap_http_error,
)


def status_error(status_code, headers=None):
    request = httpx.Request("GET", "https://api.example.com/v1/runs/r1")
    response = httpx.Response(status_code, headers=headers, text="body", request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestWrapHttpError:
    def test_rate_limit_with_retry_after(self):
        wrapped = wrap_http_error(status_error(429, {"Retry-After": "7"}))
        assert isinstance(wrapped, RateLimitError)
        assert wrapped.retryable
        assert wrapped.retry_after == 7.0

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_errors_not_retryable(self, status_code):
        wrapped = wrap_http_error(status_error(status_code))
        assert isinstance(wrapped, AuthError)
        assert not wrapped.retryable

    def test_server_error_retryable(self):
        wrapped = wrap_http_error(status_error(503))
        assert isinstance(wrapped, APIError)
        assert wrapped.retryable
        assert wrapped.status_code == 503
        assert wrapped.body == "body"

    def test_client_error_not_retryable(self):
        wrapped = wrap_http_error(status_error(404))
        assert isinstance(wrapped, APIError)
        assert not wrapped.retryable

    def test_network_errors(self):
        request = httpx.Request("GET", "https://api.example.com")
        for error in (httpx.ConnectError("refused", request=request), httpx.ReadTimeout("slow", request=request)):
            wrapped = wrap_http_error(error)
            assert isinstance(wrapped, NetworkError)
            assert wrapped.category == ErrorCategory.NETWORK

    def test_unknown_error(self):
        wrapped = wrap_http_error(ValueError("weird"))
        assert wrapped.category == ErrorCategory.UNKNOWN
        assert not wrapped.retryable

    def test_already_classified(self):
        error = APIError("x", retryable=True)
        assert wrap_http_error(error) is error


class TestRetryWithBackoff:
    """Retry loop behavior."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        func = AsyncMock(side_effect=[NetworkError("down"), NetworkError("down"), "ok"])
        on_retry = MagicMock()

        with patch("wordware_mcp.infra.error_handler.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(func, max_retries=3, initial_delay=1.0, on_retry=on_retry)

        assert result == "ok"
        assert func.await_count == 3
        assert sleep.await_count == 2
        assert [c.args[1] for c in on_retry.call_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        func = AsyncMock(side_effect=NetworkError("down"))

        with patch("wordware_mcp.infra.error_handler.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(NetworkError):
                await retry_with_backoff(func, max_retries=2)

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        func = AsyncMock(side_effect=AuthError("denied", status_code=401))

        with pytest.raises(AuthError):
            await retry_with_backoff(func, max_retries=5)

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_exceptions_outside_filter_propagate(self):
        func = AsyncMock(side_effect=KeyError("x"))

        with pytest.raises(KeyError):
            await retry_with_backoff(func, max_retries=5, retryable_exceptions=(NetworkError,))

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_honours_retry_after(self):
        func = AsyncMock(side_effect=[RateLimitError("slow down", retry_after=5.0), "ok"])

        with patch("wordware_mcp.infra.error_handler.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_with_backoff(func, max_retries=1, initial_delay=0.1)

        delay = sleep.await_args.args[0]
        assert 5.0 <= delay <= 5.5

    @pytest.mark.asyncio
    async def test_async_on_retry(self):
        func = AsyncMock(side_effect=[NetworkError("down"), "ok"])
        on_retry = AsyncMock()

        with patch("wordware_mcp.infra.error_handler.asyncio.sleep", new=AsyncMock()):
            await retry_with_backoff(func, max_retries=1, on_retry=on_retry)

        on_retry.assert_awaited_once()
