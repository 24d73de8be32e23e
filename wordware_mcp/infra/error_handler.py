"""Bridge error taxonomy plus transport retry logic with granular error types."""

import asyncio
import random
from typing import Optional, Type, Tuple, Callable, Any
from enum import Enum

import httpx


class BridgeError(Exception):
    """Base exception for all bridge failures."""


class ConfigurationError(BridgeError):
    """Missing credential or invalid setting. Fatal at startup."""


class DiscoveryError(BridgeError):
    """Tool discovery failed, either entirely or for a single descriptor."""


class SubmissionError(BridgeError):
    """A run could not be created."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class TransientPollError(BridgeError):
    """A single status fetch failed; the poll loop may try again."""


class RunFailure(BridgeError):
    """The remote run reported failure."""


class RunTimeout(BridgeError):
    """The run did not reach a terminal status in time."""


class ErrorCategory(str, Enum):
    """Categories of transport errors for retry decisions."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # API returned error response
    AUTH_ERROR = "auth_error"  # Authentication/authorization failures
    RATE_LIMIT = "rate_limit"  # Rate limit exceeded
    UNKNOWN = "unknown"


class RetryableError(Exception):
    """Base exception for classified transport errors."""
    def __init__(self, message: str, category: ErrorCategory, retryable: bool = True, retry_after: Optional[float] = None):
        self.message = message
        self.category = category
        self.retryable = retryable
        self.retry_after = retry_after
        super().__init__(message)


class NetworkError(RetryableError):
    """Network-related errors (connection, timeout)."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.NETWORK, retryable=True, retry_after=retry_after)


class APIError(RetryableError):
    """API returned an error response."""
    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "", retryable: bool = False):
        self.status_code = status_code
        self.body = body
        super().__init__(message, ErrorCategory.API_ERROR, retryable=retryable)


class AuthError(RetryableError):
    """Authentication/authorization errors."""
    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message, ErrorCategory.AUTH_ERROR, retryable=False)


class RateLimitError(RetryableError):
    """Rate limit exceeded."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.RATE_LIMIT, retryable=True, retry_after=retry_after)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def wrap_http_error(error: Exception, service: str = "wordware") -> RetryableError:
    """
    Wrap an httpx exception into our error types.

    Args:
        error: Original exception raised by httpx
        service: Service name used in messages

    Returns:
        RetryableError with appropriate category
    """
    if isinstance(error, RetryableError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status_code = response.status_code
        body = response.text
        if status_code == 429:
            return RateLimitError(
                f"{service} rate limit exceeded (429)",
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )
        if status_code in (401, 403):
            return AuthError(f"{service} auth error ({status_code})", status_code=status_code, body=body)
        if status_code >= 500:
            # Server errors are retryable
            return APIError(f"{service} server error ({status_code})", status_code=status_code, body=body, retryable=True)
        return APIError(f"{service} API error ({status_code})", status_code=status_code, body=body, retryable=False)

    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return NetworkError(f"{service} network error: {error}")

    if isinstance(error, httpx.HTTPError):
        return APIError(f"{service} HTTP error: {error}", retryable=False)

    return RetryableError(f"{service} error: {error}", ErrorCategory.UNKNOWN, retryable=False)


def classify_error(error: Exception) -> Tuple[ErrorCategory, bool, Optional[float]]:
    """
    Classify an error into a category and determine if it's retryable.

    Returns:
        Tuple of (category, retryable, retry_after_seconds)
    """
    wrapped = wrap_http_error(error)
    return wrapped.category, wrapped.retryable, wrapped.retry_after


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Any:
    """
    Retry a function with exponential backoff.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        retryable_exceptions: Exception types eligible for retry at all
        on_retry: Optional callback called on each retry (exception, attempt_number)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except retryable_exceptions as e:
            category, retryable, retry_after = classify_error(e)

            if not retryable or attempt >= max_retries:
                raise

            if retry_after is not None:
                delay = min(retry_after, max_delay)
            else:
                delay = min(initial_delay * (exponential_base ** attempt), max_delay)

            # Jitter to avoid thundering herd
            delay += random.uniform(0, delay * 0.1)

            if on_retry:
                # Handle both sync and async callbacks
                result = on_retry(e, attempt + 1)
                if asyncio.iscoroutine(result):
                    await result

            await asyncio.sleep(delay)
