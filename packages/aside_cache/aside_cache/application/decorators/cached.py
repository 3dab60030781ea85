"""Read-through caching decorator for async functions."""

import functools
import inspect
import logging
from collections.abc import Awaitable, Callable, Hashable
from datetime import timedelta
from typing import TYPE_CHECKING, Any, TypeVar, cast

if TYPE_CHECKING:
    from aside_cache.application.services.cache_service import AsideCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


def default_key_builder(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Hashable:
    """Build a cache key from the function identity and its arguments.

    Raises:
        TypeError: If an argument is not hashable
    """
    key = (func.__module__, func.__qualname__, args, tuple(sorted(kwargs.items())))
    hash(key)
    return key


def cached(
    cache: "AsideCache[Any, Any]",
    key_builder: Callable[..., Hashable | None] | None = None,
    ttl: timedelta | float | None = None,
    timeout: float | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator that serves an async function's results through a cache.

    Concurrent calls that map to the same key share one execution of the
    wrapped function. Failures are raised as ``SourceLoadError`` and are not
    cached.

    Args:
        cache: Cache holding the results
        key_builder: Receives the call's arguments and returns the cache key;
            returning None bypasses the cache for that call
        ttl: TTL for cached results
        timeout: Seconds a call waits for a shared execution

    Returns:
        Decorator function

    Example:
        @cached(cache, key_builder=lambda user_id: f"user:{user_id}")
        async def fetch_user(user_id: str) -> dict:
            return await db.fetch_user(user_id)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        # Only async functions: the wrapper awaits the cache
        if not inspect.iscoroutinefunction(func):
            raise TypeError(
                f"cached can only be applied to async functions, "
                f"but {func.__name__} is not async"
            )

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            if key_builder is not None:
                key = key_builder(*args, **kwargs)
            else:
                key = default_key_builder(func, *args, **kwargs)

            if key is None:
                logger.debug(
                    "No cache key for call, bypassing cache",
                    extra={"function": func.__name__},
                )
                return await func(*args, **kwargs)

            async def load(_key: Hashable) -> T:
                return await func(*args, **kwargs)

            return cast(T, await cache.get(key, loader=load, ttl=ttl, timeout=timeout))

        return wrapper

    return decorator
