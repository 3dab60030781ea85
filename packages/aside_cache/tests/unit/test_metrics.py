"""Unit tests for cache metrics collection."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from aside_cache.domain.enums import RemovalReason
from aside_cache.infrastructure.monitoring import CacheMetricsCollector
from prometheus_client import REGISTRY


class TestCacheMetricsCollector:
    """Test CacheMetricsCollector functionality."""

    @pytest.fixture
    def collector(self) -> CacheMetricsCollector:
        """Create a metrics collector instance."""
        return CacheMetricsCollector("test-cache")

    def test_initialization(self, collector: CacheMetricsCollector) -> None:
        assert collector.cache_name == "test-cache"

    @patch("aside_cache.infrastructure.monitoring.metrics.cache_requests_total")
    def test_record_lookup(self, mock_counter: Mock, collector: CacheMetricsCollector) -> None:
        collector.record_lookup(hit=True)
        collector.record_lookup(hit=False)

        assert [c.kwargs for c in mock_counter.labels.call_args_list] == [
            {"cache": "test-cache", "result": "hit"},
            {"cache": "test-cache", "result": "miss"},
        ]
        assert mock_counter.labels.return_value.inc.call_count == 2

    @patch("aside_cache.infrastructure.monitoring.metrics.cache_loads_total")
    @patch("aside_cache.infrastructure.monitoring.metrics.cache_load_duration")
    def test_record_load(
        self,
        mock_duration: Mock,
        mock_counter: Mock,
        collector: CacheMetricsCollector,
    ) -> None:
        collector.record_load("failure", 0.25)

        mock_counter.labels.assert_called_once_with(cache="test-cache", outcome="failure")
        mock_counter.labels.return_value.inc.assert_called_once()
        mock_duration.labels.assert_called_once_with(cache="test-cache")
        mock_duration.labels.return_value.observe.assert_called_once_with(0.25)

    @patch("aside_cache.infrastructure.monitoring.metrics.cache_writes_total")
    def test_record_write(self, mock_counter: Mock, collector: CacheMetricsCollector) -> None:
        collector.record_write("update", "success")

        mock_counter.labels.assert_called_once_with(
            cache="test-cache", strategy="update", outcome="success"
        )

    @patch("aside_cache.infrastructure.monitoring.metrics.cache_removals_total")
    def test_record_removal(self, mock_counter: Mock, collector: CacheMetricsCollector) -> None:
        collector.record_removal(RemovalReason.EXPIRED)

        mock_counter.labels.assert_called_once_with(cache="test-cache", reason="expired")

    @patch("aside_cache.infrastructure.monitoring.metrics.cache_size")
    @patch("aside_cache.infrastructure.monitoring.metrics.cache_hit_ratio")
    def test_update_store_metrics(
        self,
        mock_ratio: Mock,
        mock_size: Mock,
        collector: CacheMetricsCollector,
    ) -> None:
        collector.update_store_metrics(size=4, hit_ratio=0.75)

        mock_size.labels.return_value.set.assert_called_once_with(4)
        mock_ratio.labels.return_value.set.assert_called_once_with(0.75)

    def test_counters_reach_registry(self) -> None:
        collector = CacheMetricsCollector("registry-cache")
        labels = {"cache": "registry-cache"}
        before = REGISTRY.get_sample_value("aside_cache_load_joins_total", labels) or 0.0

        collector.record_load_joined()
        collector.record_load_joined()
        collector.record_wait_timeout()

        assert REGISTRY.get_sample_value("aside_cache_load_joins_total", labels) == before + 2
        assert REGISTRY.get_sample_value("aside_cache_wait_timeouts_total", labels) >= 1
