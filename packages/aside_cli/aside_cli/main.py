"""Main entry point for the aside-cache CLI."""

import asyncio
import json
from datetime import timedelta

import typer

from aside_cache import AsideCache, EvictionPolicyType, __version__
from aside_cache.config import reload_config
from aside_cache.infrastructure.logging import LoggingConfig, LogLevel, setup_logging

app = typer.Typer(help="Inspect and exercise aside-cache.")


@app.command()  # type: ignore[misc]
def version() -> None:
    """Show the aside-cache version."""
    typer.echo(f"aside-cache version {__version__}")


@app.command()  # type: ignore[misc]
def config() -> None:
    """Print the effective settings, environment overrides included."""
    settings = reload_config()
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


async def _run_stampede(
    callers: int, keys: int, delay_ms: int, capacity: int, policy: EvictionPolicyType
) -> dict[str, object]:
    loader_calls: dict[str, int] = {}

    async def slow_loader(key: str) -> str:
        loader_calls[key] = loader_calls.get(key, 0) + 1
        await asyncio.sleep(delay_ms / 1000)
        return f"value-for-{key}"

    async with AsideCache[str, str](
        capacity=capacity,
        default_ttl=timedelta(minutes=5),
        eviction_policy=policy,
        loader=slow_loader,
        name="cli-stampede",
    ) as cache:
        results = await asyncio.gather(
            *(cache.get(f"key-{i % keys}") for i in range(callers))
        )
        stats = cache.stats

    return {
        "callers": callers,
        "distinct_keys": keys,
        "loader_calls": sum(loader_calls.values()),
        "results": len(results),
        "stats": stats,
    }


@app.command()  # type: ignore[misc]
def stampede(
    callers: int = typer.Option(100, min=1, help="Concurrent callers"),
    keys: int = typer.Option(1, min=1, help="Distinct keys the callers spread over"),
    delay_ms: int = typer.Option(50, min=0, help="Simulated backing source latency"),
    capacity: int = typer.Option(1024, min=1, help="Cache capacity"),
    policy: EvictionPolicyType = typer.Option(EvictionPolicyType.LRU, help="Eviction policy"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Fire concurrent gets at a cold cache and report how many loads ran."""
    if verbose:
        setup_logging(LoggingConfig(level=LogLevel.DEBUG))

    report = asyncio.run(_run_stampede(callers, keys, delay_ms, capacity, policy))
    typer.echo(json.dumps(report, indent=2, default=str))


if __name__ == "__main__":
    app()
