"""Prometheus metrics for the embedded database lifecycle."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)

from embedded_mariadb import __version__

class MetricsRegistry:
    """Registry of all lifecycle metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or REGISTRY

        self.lifecycle_transitions_total = Counter(
            "mariadb_lifecycle_transitions_total",
            "Total lifecycle state transitions",
            ["state"],
            registry=self._registry,
        )

        self.install_duration_seconds = Histogram(
            "mariadb_install_duration_seconds",
            "Time spent installing binaries and initializing data",
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.resources_installed_total = Counter(
            "mariadb_resources_installed_total",
            "Total manifest resources extracted",
            registry=self._registry,
        )

        self.online_wait_seconds = Histogram(
            "mariadb_online_wait_seconds",
            "Time from process launch until the server answered a ping",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self.process_running = Gauge(
            "mariadb_process_running",
            "Whether a server process is currently owned by this manager",
            registry=self._registry,
        )

        self.shutdowns_total = Counter(
            "mariadb_shutdowns_total",
            "Total server shutdowns",
            ["mode"],  # graceful, terminated, killed
            registry=self._registry,
        )

        self.bootstrap_runs_total = Counter(
            "mariadb_bootstrap_runs_total",
            "Total credential bootstrap runs",
            ["outcome"],  # initialized, upgraded, skipped, failed
            registry=self._registry,
        )

        self.info = Info(
            "mariadb_embedded",
            "Embedded database information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def describe(self, **labels: str) -> None:
        """Publish static labels (package version, platform) on the info metric."""
        self.info.info({"version": __version__, **labels})

_metrics: MetricsRegistry | None = None

def setup_metrics(port: int = 8003, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """Create the process-wide registry and expose it on ``port``."""
    global _metrics
    _metrics = MetricsRegistry(registry)
    _metrics.describe()
    start_http_server(port, registry=_metrics.registry)
    return _metrics

def get_metrics() -> MetricsRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
