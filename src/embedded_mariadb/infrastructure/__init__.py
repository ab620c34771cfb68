"""Infrastructure layer - configuration, logging, metrics and tracing."""

from embedded_mariadb.infrastructure.config import Config, get_config
from embedded_mariadb.infrastructure.logging import setup_logging, get_logger
from embedded_mariadb.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from embedded_mariadb.infrastructure.observability import configure_observability
from embedded_mariadb.infrastructure.tracing import setup_tracing, get_tracer, trace_span

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "configure_observability",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
