"""One-call setup of logging, tracing and metrics from configuration."""

from __future__ import annotations

from embedded_mariadb.infrastructure.config import ObservabilityConfig
from embedded_mariadb.infrastructure.logging import get_logger, setup_logging
from embedded_mariadb.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from embedded_mariadb.infrastructure.tracing import setup_tracing


def configure_observability(config: ObservabilityConfig) -> MetricsRegistry:
    """Apply ``config`` and return the metrics registry the lifecycle should use.

    Tracing is only installed when an OTLP endpoint is configured, and the
    Prometheus exporter only starts when metrics are enabled.
    """
    setup_logging(config.log_level, config.log_format)

    if config.otel_endpoint:
        setup_tracing(config.otel_service_name, config.otel_endpoint)

    metrics = setup_metrics(config.metrics_port) if config.metrics_enabled else get_metrics()

    get_logger(__name__).info(
        "observability_configured",
        log_level=config.log_level,
        tracing=bool(config.otel_endpoint),
        metrics_port=config.metrics_port if config.metrics_enabled else None,
    )
    return metrics
