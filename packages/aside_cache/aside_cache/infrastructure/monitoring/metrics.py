"""Prometheus metrics for cache lookups, loads and evictions."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

from aside_cache.domain.enums import RemovalReason
from aside_cache.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Lookup metrics
cache_requests_total = Counter(
    "aside_cache_requests_total",
    "Total number of cache lookups",
    ["cache", "result"],
)

# Load metrics
cache_loads_total = Counter(
    "aside_cache_loads_total",
    "Total number of backing source loads by outcome",
    ["cache", "outcome"],
)

cache_load_joins_total = Counter(
    "aside_cache_load_joins_total",
    "Total number of callers that joined an already in-flight load",
    ["cache"],
)

cache_load_duration = Histogram(
    "aside_cache_load_duration_seconds",
    "Backing source load duration in seconds",
    ["cache"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

cache_wait_timeouts_total = Counter(
    "aside_cache_wait_timeouts_total",
    "Total number of callers that stopped waiting for a load",
    ["cache"],
)

# Write metrics
cache_writes_total = Counter(
    "aside_cache_writes_total",
    "Total number of write-path calls by outcome",
    ["cache", "strategy", "outcome"],
)

# Store metrics
cache_removals_total = Counter(
    "aside_cache_removals_total",
    "Total number of entries removed from the store by reason",
    ["cache", "reason"],
)

cache_size = Gauge(
    "aside_cache_size",
    "Current number of entries in the store",
    ["cache"],
)

cache_hit_ratio = Gauge(
    "aside_cache_hit_ratio",
    "Current cache hit ratio",
    ["cache"],
)


class CacheMetricsCollector:
    """Records cache activity for one named cache."""

    def __init__(self, cache_name: str) -> None:
        """Initialize metrics collector.

        Args:
            cache_name: Label value identifying the cache
        """
        self.cache_name = cache_name

    def record_lookup(self, hit: bool) -> None:
        """Record a lookup result."""
        cache_requests_total.labels(
            cache=self.cache_name,
            result="hit" if hit else "miss",
        ).inc()

    def record_load(self, outcome: str, duration_seconds: float) -> None:
        """Record a finished backing source load.

        Args:
            outcome: ``success``, ``failure`` or ``cancelled``
            duration_seconds: How long the loader ran
        """
        cache_loads_total.labels(cache=self.cache_name, outcome=outcome).inc()
        cache_load_duration.labels(cache=self.cache_name).observe(duration_seconds)

        logger.debug(
            "Load recorded",
            extra={
                "cache": self.cache_name,
                "outcome": outcome,
                "duration_seconds": duration_seconds,
                "metric": "aside_cache_loads_total",
            },
        )

    def record_load_joined(self) -> None:
        """Record a caller that shared an in-flight load instead of starting one."""
        cache_load_joins_total.labels(cache=self.cache_name).inc()

    def record_wait_timeout(self) -> None:
        """Record a caller giving up on an in-flight load."""
        cache_wait_timeouts_total.labels(cache=self.cache_name).inc()

    def record_write(self, strategy: str, outcome: str) -> None:
        """Record a write-path call.

        Args:
            strategy: Write strategy value
            outcome: ``success`` or ``failure``
        """
        cache_writes_total.labels(
            cache=self.cache_name,
            strategy=strategy,
            outcome=outcome,
        ).inc()

    def record_removal(self, reason: RemovalReason) -> None:
        """Record an entry leaving the store."""
        cache_removals_total.labels(cache=self.cache_name, reason=reason.value).inc()

    def update_store_metrics(self, size: int, hit_ratio: float) -> None:
        """Update store gauges.

        Args:
            size: Current store size
            hit_ratio: Current hit ratio
        """
        cache_size.labels(cache=self.cache_name).set(size)
        cache_hit_ratio.labels(cache=self.cache_name).set(hit_ratio)
