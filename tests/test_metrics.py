"""Tests for taskflow.utils.metrics module."""

import pytest

from taskflow import TaskflowClient
from taskflow.config import TaskflowConfig
from taskflow.storage import MemoryKeyValueBackend
from taskflow.utils.metrics import GatewayMetrics, SimpleMetrics, is_prometheus_available


class TestSimpleMetrics:
    """Tests for SimpleMetrics class."""

    def test_counter(self):
        """Should track counters correctly."""
        metrics = SimpleMetrics()
        metrics.inc_counter("requests")
        metrics.inc_counter("requests")
        metrics.inc_counter("requests", 3)
        assert metrics.get_counter("requests") == 5

    def test_counter_with_labels(self):
        """Should track counters with labels separately."""
        metrics = SimpleMetrics()
        metrics.inc_counter("fallbacks", labels={"domain": "tasks"})
        metrics.inc_counter("fallbacks", labels={"domain": "auth"})
        metrics.inc_counter("fallbacks", labels={"domain": "tasks"})

        assert metrics.get_counter("fallbacks", labels={"domain": "tasks"}) == 2
        assert metrics.get_counter("fallbacks", labels={"domain": "auth"}) == 1

    def test_histogram(self):
        metrics = SimpleMetrics()
        for value in (10, 20, 30):
            metrics.observe_histogram("latency", value)

        stats = metrics.get_histogram_stats("latency")
        assert stats["count"] == 3
        assert stats["min"] == 10
        assert stats["max"] == 30
        assert stats["avg"] == 20

    def test_histogram_empty(self):
        assert SimpleMetrics().get_histogram_stats("nothing")["count"] == 0

    def test_get_all_and_reset(self):
        metrics = SimpleMetrics()
        metrics.inc_counter("a", labels={"x": "1"})
        metrics.observe_histogram("h", 1.0)

        data = metrics.get_all()
        assert data["counters"] == {"a{x=1}": 1}
        assert data["histograms"]["h"]["count"] == 1
        assert data["uptime_seconds"] >= 0

        metrics.reset()
        assert metrics.get_all()["counters"] == {}


class TestGatewayMetrics:
    """Tests for GatewayMetrics recording points."""

    def test_records(self):
        metrics = GatewayMetrics()
        metrics.record_request(True, 12.5)
        metrics.record_request(False, 40.0)
        metrics.record_retry()
        metrics.record_cache(hit=True)
        metrics.record_cache(hit=False)
        metrics.record_dedup_join()
        metrics.record_fallback("profile")

        backend = metrics.backend
        assert backend.get_counter("requests_total", labels={"status": "success"}) == 1
        assert backend.get_counter("requests_total", labels={"status": "error"}) == 1
        assert backend.get_counter("retries_total") == 1
        assert backend.get_counter("cache_hits_total") == 1
        assert backend.get_counter("cache_misses_total") == 1
        assert backend.get_counter("dedup_joins_total") == 1
        assert backend.get_counter("fallbacks_total", labels={"domain": "profile"}) == 1
        assert backend.get_histogram_stats("request_duration_ms")["count"] == 2

    def test_disabled_is_noop(self):
        metrics = GatewayMetrics(enabled=False)
        metrics.record_request(True, 1.0)
        metrics.record_fallback("tasks")

        assert not metrics.is_enabled
        assert metrics.get_all() == {}
        assert metrics.backend.get_counter("fallbacks_total", labels={"domain": "tasks"}) == 0


class TestMetricsConfigIntegration:
    """Tests for metrics settings in TaskflowConfig."""

    def test_config_to_dict_includes_metrics(self):
        assert TaskflowConfig(metrics_enabled=False).to_dict()["metrics"] == {
            "enabled": False,
            "type": "simple",
            "port": 9090,
        }

    def test_config_from_dict_loads_metrics(self):
        assert TaskflowConfig.from_dict({"metrics": {"enabled": False}}).metrics_enabled is False


class TestPrometheusBackend:
    """GatewayMetrics with metrics.type = prometheus."""

    @pytest.fixture(autouse=True)
    def _require_prometheus(self):
        pytest.importorskip("prometheus_client")

    def test_records_to_own_registry(self):
        metrics = GatewayMetrics(backend_type="prometheus")
        metrics.record_request(True, 250.0)
        metrics.record_retry()
        metrics.record_cache(hit=True)
        metrics.record_dedup_join()
        metrics.record_fallback("tasks")

        backend = metrics.backend
        assert metrics.backend_type == "prometheus"
        assert backend.sample("taskflow_requests_total", {"status": "success"}) == 1
        assert backend.sample("taskflow_request_duration_seconds_sum") == 0.25
        assert backend.sample("taskflow_retries_total") == 1
        assert backend.sample("taskflow_cache_lookups_total", {"result": "hit"}) == 1
        assert backend.sample("taskflow_dedup_joins_total") == 1
        assert backend.sample("taskflow_fallbacks_total", {"domain": "tasks"}) == 1
        assert "note" in metrics.get_all()

    def test_instances_do_not_share_registries(self):
        first = GatewayMetrics(backend_type="prometheus")
        second = GatewayMetrics(backend_type="prometheus")
        first.record_retry()
        assert second.backend.sample("taskflow_retries_total") == 0

    def test_disabled_stays_simple(self):
        assert GatewayMetrics(enabled=False, backend_type="prometheus").backend_type == "simple"

    def test_client_selects_backend_from_config(self):
        client = TaskflowClient(
            TaskflowConfig(metrics_type="prometheus"),
            backend=MemoryKeyValueBackend(),
        )
        assert client.gateway.metrics.backend_type == "prometheus"
        assert is_prometheus_available()
