"""Unit tests for LoadCoordinator."""

from __future__ import annotations

import asyncio
import threading
from unittest.mock import MagicMock

import pytest
from aside_cache.application.services import LoadCoordinator, call_source
from aside_cache.domain.exceptions import LoadTimeoutError, SourceLoadError


class CountingLoader:
    """Async loader that counts calls and can be held open."""

    def __init__(self, value: object = 42, delay: float = 0.05) -> None:
        self.value = value
        self.delay = delay
        self.calls: list[object] = []

    async def __call__(self, key: object) -> object:
        self.calls.append(key)
        await asyncio.sleep(self.delay)
        return self.value


async def _load(key: object) -> str:
    return f"value-{key}"


class TestCallSource:
    """Test calling sync and async source functions."""

    @pytest.mark.asyncio
    async def test_async_function(self) -> None:
        assert await call_source(_load, "a") == "value-a"

    @pytest.mark.asyncio
    async def test_sync_function_runs_off_loop_thread(self) -> None:
        main_thread = threading.get_ident()
        threads: list[int] = []

        def load(key: str) -> str:
            threads.append(threading.get_ident())
            return key.upper()

        assert await call_source(load, "a") == "A"
        assert threads and threads[0] != main_thread

    @pytest.mark.asyncio
    async def test_sync_function_returning_awaitable(self) -> None:
        loader = CountingLoader(value="x", delay=0)

        def load(key: str):  # type: ignore[no-untyped-def]
            return loader(key)

        assert await call_source(load, "a") == "x"


class TestLoadCoordinator:
    """Test per-key load deduplication."""

    @pytest.mark.asyncio
    async def test_single_caller(self) -> None:
        coordinator: LoadCoordinator[str, str] = LoadCoordinator()

        assert await coordinator.load_once("a", _load) == "value-a"
        assert coordinator.in_flight_count == 0
        assert coordinator.stats["loads_started"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        loader = CountingLoader(value=42)

        results = await asyncio.gather(
            *(coordinator.load_once("X", loader) for _ in range(100))
        )

        assert results == [42] * 100
        assert loader.calls == ["X"]
        assert coordinator.stats["loads_started"] == 1
        assert coordinator.stats["loads_joined"] == 99
        assert coordinator.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_load_concurrently(self) -> None:
        coordinator: LoadCoordinator[str, str] = LoadCoordinator()
        started = {"a": asyncio.Event(), "b": asyncio.Event()}
        release = asyncio.Event()

        async def load(key: str) -> str:
            started[key].set()
            await release.wait()
            return key

        task_a = asyncio.create_task(coordinator.load_once("a", load))
        task_b = asyncio.create_task(coordinator.load_once("b", load))

        await asyncio.wait_for(started["a"].wait(), timeout=1)
        await asyncio.wait_for(started["b"].wait(), timeout=1)
        assert coordinator.in_flight("a")
        assert coordinator.in_flight("b")

        release.set()
        assert await task_a == "a"
        assert await task_b == "b"
        assert not coordinator.in_flight("a")

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        calls = 0

        async def failing(key: str) -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            raise ConnectionError("database unavailable")

        results = await asyncio.gather(
            *(coordinator.load_once("k", failing) for _ in range(10)),
            return_exceptions=True,
        )

        assert calls == 1
        assert all(isinstance(result, SourceLoadError) for result in results)
        assert all(isinstance(result.__cause__, ConnectionError) for result in results)
        assert results[0].key == "k"
        assert "database unavailable" in str(results[0])
        assert coordinator.stats["load_failures"] == 1

    @pytest.mark.asyncio
    async def test_failure_is_not_remembered(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        attempts = 0

        async def flaky(key: str) -> int:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise ValueError("first attempt fails")
            return 7

        with pytest.raises(SourceLoadError):
            await coordinator.load_once("k", flaky)

        assert await coordinator.load_once("k", flaky) == 7
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_type_name(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()

        async def failing(key: str) -> int:
            raise KeyError()

        with pytest.raises(SourceLoadError, match="KeyError"):
            await coordinator.load_once("k", failing)

    @pytest.mark.asyncio
    async def test_timeout_only_affects_that_waiter(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        loader = CountingLoader(value=5, delay=0.1)

        patient = asyncio.create_task(coordinator.load_once("k", loader))
        await asyncio.sleep(0)

        with pytest.raises(LoadTimeoutError) as exc_info:
            await coordinator.load_once("k", loader, timeout=0.01)

        assert exc_info.value.error_code == "LOAD_TIMEOUT"
        assert coordinator.in_flight("k")
        assert await patient == 5
        assert loader.calls == ["k"]
        assert coordinator.stats["load_timeouts"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_load(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        loader = CountingLoader(value=9, delay=0.05)

        first = asyncio.create_task(coordinator.load_once("k", loader))
        second = asyncio.create_task(coordinator.load_once("k", loader))
        await asyncio.sleep(0.01)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        assert await second == 9
        assert loader.calls == ["k"]

    @pytest.mark.asyncio
    async def test_on_success_runs_once_before_waiters_resume(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        on_success = MagicMock()
        loader = CountingLoader(value=3, delay=0.02)

        results = await asyncio.gather(
            coordinator.load_once("k", loader, on_success=on_success),
            coordinator.load_once("k", loader, on_success=on_success),
        )

        assert results == [3, 3]
        on_success.assert_called_once_with(3)

    @pytest.mark.asyncio
    async def test_on_success_skipped_on_failure(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        on_success = MagicMock()

        async def failing(key: str) -> int:
            raise RuntimeError("boom")

        with pytest.raises(SourceLoadError):
            await coordinator.load_once("k", failing, on_success=on_success)

        on_success.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidate_detaches_running_load(self) -> None:
        coordinator: LoadCoordinator[str, str] = LoadCoordinator()
        on_success = MagicMock()
        release = asyncio.Event()
        calls = 0

        async def load(key: str) -> str:
            nonlocal calls
            calls += 1
            n = calls
            await release.wait()
            return f"v{n}"

        stale = asyncio.create_task(coordinator.load_once("k", load, on_success=on_success))
        while calls < 1:
            await asyncio.sleep(0)

        assert coordinator.invalidate("k") is True
        assert coordinator.invalidate("k") is False
        assert not coordinator.in_flight("k")
        assert coordinator.stats["detached"] == 1

        fresh = asyncio.create_task(coordinator.load_once("k", load))
        for _ in range(5):
            await asyncio.sleep(0)

        # The fresh load holds off until the detached one is done
        assert calls == 1
        assert coordinator.in_flight("k")

        release.set()

        # The stale waiter still receives its own result
        assert await stale == "v1"
        assert await fresh == "v2"
        on_success.assert_not_called()
        assert calls == 2
        assert coordinator.stats["detached"] == 0

    @pytest.mark.asyncio
    async def test_loads_never_overlap_across_invalidations(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        active = 0
        peak = 0
        calls = 0

        async def load(key: str) -> int:
            nonlocal active, peak, calls
            calls += 1
            n = calls
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return n

        tasks = []
        for _ in range(3):
            tasks.append(asyncio.create_task(coordinator.load_once("k", load)))
            await asyncio.sleep(0.005)
            assert coordinator.invalidate("k") is True

        assert await asyncio.gather(*tasks) == [1, 2, 3]
        assert peak == 1
        assert coordinator.stats["detached"] == 0

    @pytest.mark.asyncio
    async def test_failed_detached_load_does_not_block_next(self) -> None:
        coordinator: LoadCoordinator[str, str] = LoadCoordinator()

        async def failing(key: str) -> str:
            await asyncio.sleep(0.01)
            raise ConnectionError("down")

        stale = asyncio.create_task(coordinator.load_once("k", failing))
        await asyncio.sleep(0)
        coordinator.invalidate("k")

        assert await coordinator.load_once("k", _load) == "value-k"
        with pytest.raises(SourceLoadError):
            await stale

    @pytest.mark.asyncio
    async def test_close_cancels_detached_loads(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        loader = CountingLoader(delay=10)

        waiter = asyncio.create_task(coordinator.load_once("k", loader))
        await asyncio.sleep(0)
        coordinator.invalidate("k")

        await coordinator.close()

        with pytest.raises(SourceLoadError, match="cancelled"):
            await waiter
        assert coordinator.stats["detached"] == 0

    @pytest.mark.asyncio
    async def test_invalidate_all(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        loader = CountingLoader(delay=0.02)

        tasks = [asyncio.create_task(coordinator.load_once(k, loader)) for k in ("a", "b")]
        await asyncio.sleep(0)

        assert coordinator.invalidate_all() == 2
        assert coordinator.in_flight_count == 0
        assert await asyncio.gather(*tasks) == [42, 42]

    @pytest.mark.asyncio
    async def test_sync_loader(self) -> None:
        coordinator: LoadCoordinator[str, str] = LoadCoordinator()

        assert await coordinator.load_once("a", str.upper) == "A"

    @pytest.mark.asyncio
    async def test_close_cancels_loads(self) -> None:
        coordinator: LoadCoordinator[str, int] = LoadCoordinator()
        loader = CountingLoader(delay=10)

        waiter = asyncio.create_task(coordinator.load_once("k", loader))
        await asyncio.sleep(0)

        await coordinator.close()

        with pytest.raises(SourceLoadError, match="cancelled"):
            await waiter
        assert coordinator.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_metrics_recorded(self) -> None:
        metrics = MagicMock()
        coordinator: LoadCoordinator[str, int] = LoadCoordinator("m", metrics)
        loader = CountingLoader(delay=0.01)

        await asyncio.gather(*(coordinator.load_once("k", loader) for _ in range(3)))

        assert metrics.record_load_joined.call_count == 2
        metrics.record_load.assert_called_once()
        assert metrics.record_load.call_args.args[0] == "success"
