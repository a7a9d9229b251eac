"""
Metrics collection for the TaskFlow data-access layer.

In-memory counters and histograms by default. The Prometheus backend needs
the ``prometheus`` extra:
    pip install taskflow[prometheus]
"""

import importlib.util
import time
from typing import Any, Dict, Optional


class SimpleMetrics:
    """
    Simple in-memory metrics collector.

    Provides labelled counters and histograms.
    """

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, list] = {}
        self._start_time = time.time()

    def inc_counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        self._counters[key] = self._counters.get(key, 0) + value

    def observe_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        """Record a histogram observation."""
        key = self._make_key(name, labels)
        self._histograms.setdefault(key, []).append(value)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        """Get counter value."""
        return self._counters.get(self._make_key(name, labels), 0)

    def get_histogram_stats(self, name: str, labels: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        """Get histogram statistics."""
        values = self._histograms.get(self._make_key(name, labels), [])
        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "avg": 0}
        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "avg": sum(values) / len(values),
        }

    def get_all(self) -> Dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "counters": dict(self._counters),
            "histograms": {k: self.get_histogram_stats(k) for k in self._histograms},
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self._counters.clear()
        self._histograms.clear()
        self._start_time = time.time()

    @staticmethod
    def _make_key(name: str, labels: Optional[Dict[str, str]] = None) -> str:
        """Create a unique key for a metric with labels."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"



class PrometheusMetrics:
    """
    Prometheus metrics collector.

    Each instance owns a ``CollectorRegistry`` so several clients (or tests)
    can live in one process.
    """

    def __init__(self, port: int = 9090, registry: Any = None) -> None:
        try:
            from prometheus_client import CollectorRegistry, Counter, Histogram
        except ImportError as exc:
            raise ImportError(
                "prometheus_client not installed. "
                "Install with: pip install taskflow[prometheus]"
            ) from exc

        self._port = port
        self._server_started = False
        self.registry = registry if registry is not None else CollectorRegistry()

        self._requests_total = Counter(
            "taskflow_requests_total",
            "Remote requests by outcome",
            ["status"],
            registry=self.registry,
        )
        self._request_duration = Histogram(
            "taskflow_request_duration_seconds",
            "Remote request duration in seconds",
            registry=self.registry,
        )
        self._retries_total = Counter(
            "taskflow_retries_total",
            "Retried remote attempts",
            registry=self.registry,
        )
        self._cache_lookups_total = Counter(
            "taskflow_cache_lookups_total",
            "Catalog cache lookups",
            ["result"],
            registry=self.registry,
        )
        self._dedup_joins_total = Counter(
            "taskflow_dedup_joins_total",
            "Reads that joined an in-flight request",
            registry=self.registry,
        )
        self._fallbacks_total = Counter(
            "taskflow_fallbacks_total",
            "Operations served by the local store after a remote failure",
            ["domain"],
            registry=self.registry,
        )

    def start_server(self) -> None:
        """Start the Prometheus HTTP server."""
        if not self._server_started:
            from prometheus_client import start_http_server

            start_http_server(self._port, registry=self.registry)
            self._server_started = True

    def record_request(self, success: bool, duration_ms: float) -> None:
        status = "success" if success else "error"
        self._requests_total.labels(status=status).inc()
        self._request_duration.observe(duration_ms / 1000)

    def record_retry(self) -> None:
        self._retries_total.inc()

    def record_cache(self, hit: bool) -> None:
        self._cache_lookups_total.labels(result="hit" if hit else "miss").inc()

    def record_dedup_join(self) -> None:
        self._dedup_joins_total.inc()

    def record_fallback(self, domain: str) -> None:
        self._fallbacks_total.labels(domain=domain).inc()

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of one sample, 0 when never recorded."""
        return self.registry.get_sample_value(name, labels or {}) or 0.0


class GatewayMetrics:
    """
    Named recording points for the gateway and the dual-backend stores.

    Chooses the backend from ``backend_type`` ("simple" or "prometheus").
    When disabled every call is a no-op and ``get_all`` is empty.
    """

    def __init__(
        self,
        enabled: bool = True,
        backend_type: str = "simple",
        port: int = 9090,
        registry: Any = None,
    ) -> None:
        self._enabled = enabled
        self._backend: Any
        if enabled and backend_type == "prometheus":
            self._backend = PrometheusMetrics(port=port, registry=registry)
        else:
            self._backend = SimpleMetrics()

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def backend(self) -> Any:
        return self._backend

    @property
    def backend_type(self) -> str:
        if isinstance(self._backend, PrometheusMetrics):
            return "prometheus"
        return "simple"

    def start_server(self) -> None:
        """Start the metrics HTTP endpoint (Prometheus only)."""
        if isinstance(self._backend, PrometheusMetrics):
            self._backend.start_server()

    def record_request(self, success: bool, duration_ms: float) -> None:
        if not self._enabled:
            return
        if isinstance(self._backend, PrometheusMetrics):
            self._backend.record_request(success, duration_ms)
            return
        status = "success" if success else "error"
        self._backend.inc_counter("requests_total", labels={"status": status})
        self._backend.observe_histogram("request_duration_ms", duration_ms)

    def record_retry(self) -> None:
        if not self._enabled:
            return
        if isinstance(self._backend, PrometheusMetrics):
            self._backend.record_retry()
        else:
            self._backend.inc_counter("retries_total")

    def record_cache(self, hit: bool) -> None:
        if not self._enabled:
            return
        if isinstance(self._backend, PrometheusMetrics):
            self._backend.record_cache(hit)
        else:
            self._backend.inc_counter("cache_hits_total" if hit else "cache_misses_total")

    def record_dedup_join(self) -> None:
        if not self._enabled:
            return
        if isinstance(self._backend, PrometheusMetrics):
            self._backend.record_dedup_join()
        else:
            self._backend.inc_counter("dedup_joins_total")

    def record_fallback(self, domain: str) -> None:
        if not self._enabled:
            return
        if isinstance(self._backend, PrometheusMetrics):
            self._backend.record_fallback(domain)
        else:
            self._backend.inc_counter("fallbacks_total", labels={"domain": domain})

    def get_all(self) -> Dict[str, Any]:
        """All metrics (simple backend only)."""
        if not self._enabled:
            return {}
        if isinstance(self._backend, SimpleMetrics):
            return self._backend.get_all()
        return {"note": "Use the Prometheus endpoint for metrics"}


def is_prometheus_available() -> bool:
    """Check if prometheus_client is installed."""
    return importlib.util.find_spec("prometheus_client") is not None
