"""TaskFlow utilities."""

from .logging import get_logger, setup_logging, setup_logging_from_dict
from .metrics import GatewayMetrics, PrometheusMetrics, SimpleMetrics, is_prometheus_available
from .retry import RetryConfig, with_retry

__all__ = [
    "get_logger",
    "setup_logging",
    "setup_logging_from_dict",
    "GatewayMetrics",
    "PrometheusMetrics",
    "SimpleMetrics",
    "is_prometheus_available",
    "RetryConfig",
    "with_retry",
]
