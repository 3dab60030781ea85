"""Per-key load deduplication (stampede control).

At most one backing source load per key is in flight at any time. Callers
that miss on a key while its load is running join that load instead of
starting their own, and every one of them receives the same outcome.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from aside_cache.application.error_handling import with_timeout
from aside_cache.domain.exceptions import LoadTimeoutError, OperationTimeoutError, SourceLoadError
from aside_cache.infrastructure.logging import get_logger
from aside_cache.infrastructure.monitoring import CacheMetricsCollector

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Loader = Callable[[Any], Any]


async def call_source(fn: Callable[[Any], Any], arg: Any) -> Any:
    """Call a backing source function without blocking the event loop.

    Coroutine functions are awaited directly. Any other callable runs in a
    worker thread, and an awaitable it returns is awaited.
    """
    if inspect.iscoroutinefunction(fn):
        return await fn(arg)
    result = await asyncio.to_thread(fn, arg)
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass
class InFlightLoad:
    """A running load and the bookkeeping shared by its waiters."""

    key: Any
    started_at: float
    task: asyncio.Task[Any] | None = None
    waiters: int = 1
    detached: bool = False


class LoadCoordinator(Generic[K, V]):
    """Deduplicates concurrent loads of the same key.

    The in-flight registry is only touched from the event loop, with no
    suspension point between looking a key up and registering a new load,
    so two racing callers can never both start a load for one key.

    Waiters are shielded from the load: a caller that is cancelled or times
    out stops waiting, while the load runs to completion for everyone else.

    Example:
        coordinator = LoadCoordinator()
        results = await asyncio.gather(
            *(coordinator.load_once("user:1", fetch_user) for _ in range(100))
        )
        # fetch_user ran once
    """

    def __init__(
        self,
        name: str = "default",
        metrics: CacheMetricsCollector | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            name: Name used in logs
            metrics: Optional metrics collector
        """
        self._name = name
        self._metrics = metrics
        self._in_flight: dict[K, InFlightLoad] = {}
        # Detached loads still running, which the next load of the key waits out
        self._detached: dict[K, InFlightLoad] = {}

        # Statistics
        self._loads_started = 0
        self._loads_joined = 0
        self._load_failures = 0
        self._load_timeouts = 0

    async def load_once(
        self,
        key: K,
        loader: Loader,
        *,
        timeout: float | None = None,
        on_success: Callable[[V], None] | None = None,
    ) -> V:
        """Load ``key`` through ``loader``, sharing any load already in flight.

        Args:
            key: Key to load
            loader: ``loader(key)`` returning the value, sync or async
            timeout: Seconds this caller waits before giving up
            on_success: Called once with the loaded value before waiters are
                released, unless the load was invalidated while running.
                Only the caller that starts a load supplies it.

        Returns:
            The loaded value

        Raises:
            SourceLoadError: If the loader failed or the load was cancelled
            LoadTimeoutError: If ``timeout`` elapsed first
        """
        record = self._in_flight.get(key)
        if record is None or record.task is None or record.task.done():
            record = self._start_load(key, loader, on_success)
        else:
            record.waiters += 1
            self._loads_joined += 1
            if self._metrics:
                self._metrics.record_load_joined()
            logger.debug(
                "Joined in-flight load",
                extra={"cache": self._name, "key": key, "waiters": record.waiters},
            )

        return await self._wait(record, timeout)

    def invalidate(self, key: K) -> bool:
        """Detach the in-flight load for ``key``.

        Callers already waiting still receive its result, but its
        ``on_success`` hook is skipped. Later callers start a fresh load,
        which calls the loader only after the detached one has finished.

        Returns:
            True if a load was detached
        """
        record = self._in_flight.pop(key, None)
        if record is None:
            return False
        record.detached = True
        if record.task is not None and not record.task.done():
            self._detached[key] = record
        logger.debug("Detached in-flight load", extra={"cache": self._name, "key": key})
        return True

    def invalidate_all(self) -> int:
        """Detach every in-flight load.

        Returns:
            Number of loads detached
        """
        keys = list(self._in_flight)
        for key in keys:
            self.invalidate(key)
        return len(keys)

    def in_flight(self, key: K) -> bool:
        """Check whether a load for ``key`` is running."""
        record = self._in_flight.get(key)
        return record is not None and record.task is not None and not record.task.done()

    @property
    def in_flight_count(self) -> int:
        """Number of loads currently registered."""
        return len(self._in_flight)

    @property
    def stats(self) -> dict[str, Any]:
        """Get coordinator statistics."""
        return {
            "in_flight": self.in_flight_count,
            "detached": len(self._detached),
            "loads_started": self._loads_started,
            "loads_joined": self._loads_joined,
            "load_failures": self._load_failures,
            "load_timeouts": self._load_timeouts,
        }

    async def close(self) -> None:
        """Cancel every in-flight load and wait for them to finish."""
        records = [*self._in_flight.values(), *self._detached.values()]
        self._in_flight.clear()
        self._detached.clear()
        tasks = [record.task for record in records if record.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(
                "Cancelled in-flight loads", extra={"cache": self._name, "count": len(tasks)}
            )

    def _start_load(
        self,
        key: K,
        loader: Loader,
        on_success: Callable[[V], None] | None,
    ) -> InFlightLoad:
        predecessor = self._detached.get(key)
        record = InFlightLoad(key=key, started_at=time.perf_counter())
        record.task = asyncio.get_running_loop().create_task(
            self._run(record, loader, on_success, predecessor),
            name=f"aside-cache-load[{self._name}]:{key!r}",
        )
        record.task.add_done_callback(lambda task: self._finish(record, task))
        self._in_flight[key] = record
        self._loads_started += 1

        logger.info("Started backing source load", extra={"cache": self._name, "key": key})
        return record

    async def _run(
        self,
        record: InFlightLoad,
        loader: Loader,
        on_success: Callable[[V], None] | None,
        predecessor: InFlightLoad | None = None,
    ) -> V:
        try:
            if predecessor is not None and predecessor.task is not None:
                # Outcome ignored: only one loader call per key at a time
                await asyncio.wait([predecessor.task])
            value = await call_source(loader, record.key)
        except asyncio.CancelledError:
            self._record_outcome(record, "cancelled")
            raise
        except Exception as e:
            self._load_failures += 1
            self._record_outcome(record, "failure")
            logger.error(
                "Backing source load failed",
                extra={
                    "cache": self._name,
                    "key": record.key,
                    "waiters": record.waiters,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise

        self._record_outcome(record, "success")
        if on_success is not None and not record.detached:
            on_success(value)
        return value

    async def _wait(self, record: InFlightLoad, timeout: float | None) -> V:
        task = record.task
        assert task is not None
        try:
            if timeout is None:
                return await asyncio.shield(task)
            return await with_timeout(
                asyncio.shield(task), timeout, operation_name=f"load {record.key!r}"
            )
        except OperationTimeoutError as e:
            self._load_timeouts += 1
            if self._metrics:
                self._metrics.record_wait_timeout()
            logger.warning(
                "Gave up waiting for load",
                extra={"cache": self._name, "key": record.key, "timeout_seconds": timeout},
            )
            raise LoadTimeoutError(record.key, timeout) from e
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                raise SourceLoadError(record.key, "load was cancelled") from None
            raise
        except Exception as e:
            raise SourceLoadError(record.key, str(e) or type(e).__name__) from e

    def _finish(self, record: InFlightLoad, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(record.key) is record:
            del self._in_flight[record.key]
        if self._detached.get(record.key) is record:
            del self._detached[record.key]
        # Mark the outcome retrieved even if every waiter has gone
        if not task.cancelled():
            task.exception()

    def _record_outcome(self, record: InFlightLoad, outcome: str) -> None:
        duration = time.perf_counter() - record.started_at
        if self._metrics:
            self._metrics.record_load(outcome, duration)
        logger.debug(
            "Backing source load finished",
            extra={
                "cache": self._name,
                "key": record.key,
                "outcome": outcome,
                "duration_seconds": duration,
                "waiters": record.waiters,
            },
        )
