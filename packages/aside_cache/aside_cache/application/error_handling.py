"""Caller-side error handling helpers.

The cache never retries a failed load or persist on its own. Callers that
want retries wrap their loader with ``with_retry`` before handing it over:

    @with_retry(RetryConfig(max_attempts=5))
    async def load_user(user_id: str) -> dict:
        return await db.fetch_user(user_id)

    user = await cache.get("user:42", loader=load_user)
"""

import asyncio
import functools
import inspect
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from aside_cache.domain.exceptions import ApplicationError, OperationTimeoutError
from aside_cache.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
AsyncFunc = TypeVar("AsyncFunc", bound=Callable[..., Awaitable[Any]])


class RetryStrategy(str, Enum):
    """Retry strategies for error recovery."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


class RetryConfig(BaseModel):
    """Configuration for retry behavior."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts, first call included")
    initial_delay: float = Field(default=0.1, gt=0, description="Initial delay in seconds")
    max_delay: float = Field(default=10.0, gt=0, description="Maximum delay in seconds")
    strategy: RetryStrategy = Field(default=RetryStrategy.EXPONENTIAL, description="Retry strategy")
    jitter: bool = Field(default=True, description="Add jitter to retry delays")
    retryable_exceptions: tuple[type[Exception], ...] = Field(
        default=(ConnectionError, TimeoutError, OSError),
        description="Exceptions that trigger retry",
    )


def calculate_retry_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay before the next attempt.

    Args:
        attempt: Number of the attempt that just failed, starting at 1
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    if config.strategy == RetryStrategy.CONSTANT:
        delay = config.initial_delay
    elif config.strategy == RetryStrategy.LINEAR:
        delay = config.initial_delay * attempt
    else:  # EXPONENTIAL
        delay = config.initial_delay * (2 ** (attempt - 1))

    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_range, jitter_range)

    return max(0.0, delay)


def with_retry(config: RetryConfig | None = None) -> Callable[[AsyncFunc], AsyncFunc]:
    """
    Decorator for adding retry logic to async loaders or persist functions.

    Example:
        @with_retry(RetryConfig(max_attempts=5))
        async def fetch_data(key):
            # Code that might fail
            pass
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: AsyncFunc) -> AsyncFunc:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(
                f"with_retry can only be applied to async functions, "
                f"but {func.__name__} is not async"
            )

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(
                            f"Max retry attempts ({config.max_attempts}) reached "
                            f"for {func.__name__}",
                            extra={
                                "function": func.__name__,
                                "attempt": attempt,
                                "error": str(e),
                            },
                        )
                        raise

                    delay = calculate_retry_delay(attempt, config)
                    logger.warning(
                        f"Retry attempt {attempt}/{config.max_attempts} for {func.__name__} "
                        f"after {delay:.2f}s delay",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt,
                            "delay": delay,
                            "error": str(e),
                        },
                    )
                    await asyncio.sleep(delay)

            raise ApplicationError("Unexpected retry loop exit")

        return wrapper  # type: ignore[return-value]

    return decorator


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    operation_name: str = "operation",
) -> T:
    """
    Execute an awaitable with a timeout.

    Args:
        coro: Awaitable to execute
        timeout: Timeout in seconds
        operation_name: Name for error reporting

    Returns:
        Awaitable result

    Raises:
        OperationTimeoutError: If the operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        raise OperationTimeoutError(operation_name, timeout) from e
