"""Embedded Database - lifecycle facade for one managed server.

This module provides the EmbeddedDatabase class that wires the resource
installer, version tracker, process driver, online poller and credential
bootstrap together behind install/start/stop.

Usage:
    from embedded_mariadb.adapters.outbound import DirectoryResourceSource
    from embedded_mariadb.application import EmbeddedDatabase
    from embedded_mariadb.infrastructure import get_config

    config = get_config()
    database = EmbeddedDatabase(
        config.to_server_properties(),
        connection_factory=my_driver_factory,
        resources=DirectoryResourceSource("/opt/mariadb-dist"),
        timeouts=config.timeouts,
    )

    with database:
        ...  # server is ONLINE here

Lifecycle:
    install():  NOT_INSTALLED/INSTALLED/STOPPED/FAILED -> INSTALLED
    start():    -> STARTING [-> UPGRADING] -> ONLINE
    stop():     ONLINE/FAILED -> STOPPING -> STOPPED

Any failure moves the facade to FAILED and re-raises. Recovery is an explicit
call to install() or start() again.
"""

from __future__ import annotations

import atexit
from typing import Any, Callable

from embedded_mariadb.adapters.outbound.default_schema_initializer import DefaultSchemaInitializer
from embedded_mariadb.adapters.outbound.process_driver import ProcessDriver
from embedded_mariadb.domain.entities import (
    InvalidTransition,
    LifecycleState,
    LifecycleStateMachine,
    ServerProperties,
    StateChange,
)
from embedded_mariadb.domain.services import (
    BootstrapResult,
    CredentialBootstrap,
    OnlinePoller,
    ResourceInstaller,
    VersionTracker,
)
from embedded_mariadb.domain.value_objects import Version
from embedded_mariadb.infrastructure.config import TimeoutConfig
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.infrastructure.metrics import MetricsRegistry, get_metrics
from embedded_mariadb.infrastructure.tracing import trace_span
from embedded_mariadb.ports.inbound import (
    EmbeddedDatabaseError,
    InstallationError,
    InvalidStateTransitionError,
    StartupError,
)
from embedded_mariadb.ports.outbound import ConnectionFactory, ResourceSource, SchemaInitializer

logger = get_logger(__name__)


class EmbeddedDatabase:
    """Lifecycle manager for one embedded MariaDB/MySQL server.

    Implements EmbeddedDatabasePort. All calls are synchronous and must come
    from one supervising thread.
    """

    def __init__(
        self,
        properties: ServerProperties,
        connection_factory: ConnectionFactory,
        resources: ResourceSource,
        schema_initializer: SchemaInitializer | None = None,
        timeouts: TimeoutConfig | None = None,
        metrics: MetricsRegistry | None = None,
        on_shutdown: Callable[[], None] | None = None,
        register_exit_hook: Callable[[Callable[[], None]], object] = atexit.register,
    ) -> None:
        """Initialize the lifecycle manager.

        Args:
            properties: Server properties; never mutated.
            connection_factory: Opens SQL connections to the managed server.
            resources: Source of the packaged binaries.
            schema_initializer: Application schema callbacks. Defaults to
                DefaultSchemaInitializer.
            timeouts: Install, upgrade, online and shutdown budgets.
            metrics: Metrics registry.
            on_shutdown: Called after the exit hook stopped the server.
            register_exit_hook: Registers the interpreter exit hook.
        """
        self._properties = properties
        self._schema_initializer = schema_initializer or DefaultSchemaInitializer()
        self._timeouts = timeouts or TimeoutConfig()
        self._metrics = metrics or get_metrics()

        installer = ResourceInstaller(resources)
        self._version_tracker = VersionTracker(
            properties.installation_directory,
            properties.data_directory,
            packaged_version=installer.packaged_version(properties.operating_system),
        )
        self._driver = ProcessDriver(
            properties,
            installer,
            self._version_tracker,
            timeouts=self._timeouts,
            metrics=self._metrics,
            on_shutdown=on_shutdown,
            register_exit_hook=register_exit_hook,
            exit_stop=self._stop_at_exit,
        )
        self._poller = OnlinePoller(
            connection_factory,
            properties,
            poll_interval_seconds=self._timeouts.poll_interval_seconds,
        )
        self._bootstrap = CredentialBootstrap(connection_factory, properties)

        initial_state = (
            LifecycleState.INSTALLED
            if self._version_tracker.is_installed()
            else LifecycleState.NOT_INSTALLED
        )
        self._lifecycle = LifecycleStateMachine(state=initial_state)
        self._last_bootstrap: BootstrapResult | None = None

    @property
    def properties(self) -> ServerProperties:
        return self._properties

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    @property
    def history(self) -> list[StateChange]:
        return list(self._lifecycle.history)

    @property
    def error_message(self) -> str:
        return self._lifecycle.error_message

    @property
    def last_bootstrap(self) -> BootstrapResult | None:
        return self._last_bootstrap

    @property
    def driver(self) -> ProcessDriver:
        return self._driver

    def is_installation_required(self) -> bool:
        return not self._version_tracker.is_installed()

    def get_installation_version(self) -> Version | None:
        return self._version_tracker.installation_version()

    def get_data_version(self) -> Version | None:
        return self._version_tracker.data_version()

    def is_online(self) -> bool:
        """Ping the server once."""
        return self._poller.is_online()

    def install(self) -> None:
        """Install binaries and initialize the data directory if needed.

        Raises:
            InvalidStateTransitionError: If called while the server is running.
            InstallationError: If any installation step fails.
        """
        self._require(LifecycleState.INSTALLED)

        with trace_span(
            "embedded_mariadb.install",
            {"operating_system": str(self._properties.operating_system)},
        ):
            logger.info(
                "installing_database",
                installation_directory=str(self._properties.installation_directory),
                data_directory=str(self._properties.data_directory),
            )
            try:
                with self._metrics.install_duration_seconds.time():
                    self._driver.install()
            except EmbeddedDatabaseError as e:
                self._fail("install", e)
                raise
            except Exception as e:
                self._fail("install", e)
                raise InstallationError(f"Unable to install database: {e}") from e

            self._transition(LifecycleState.INSTALLED, "installed")

    def start(self) -> None:
        """Start the server and return once it is online and bootstrapped.

        Installs first when the installation is missing or outdated.

        Raises:
            InvalidStateTransitionError: If the server is already running.
            InstallationError: If the implicit install fails.
            StartupError: If the server process cannot be launched.
            OnlineTimeoutError: If the server does not answer in time.
            UpgradeError: If a binary or schema upgrade fails.
            BootstrapError: If credential bootstrap fails.
        """
        self._require(LifecycleState.STARTING)

        if self.is_installation_required():
            self.install()

        with trace_span(
            "embedded_mariadb.start",
            {"hostname": self._properties.hostname, "port": self._properties.port},
        ):
            self._transition(LifecycleState.STARTING, "start requested")
            try:
                self._driver.start()

                elapsed = self._poller.wait_until_online(self._timeouts.online_timeout_seconds)
                self._metrics.online_wait_seconds.observe(elapsed)

                data_version_current = True
                if self._version_tracker.upgrade_required():
                    self._transition(LifecycleState.UPGRADING, "data files behind binaries")
                    logger.info(
                        "upgrading_data_directory",
                        data_version=str(self.get_data_version()),
                        installation_version=str(self.get_installation_version()),
                    )
                    data_version_current = self._driver.upgrade()

                self._run_bootstrap()

                if data_version_current:
                    self._version_tracker.write_data_version()
            except EmbeddedDatabaseError as e:
                self._fail("start", e)
                raise
            except Exception as e:
                # Collaborators (connection factory, schema initializer) may
                # raise their own types; the process stays up for stop().
                self._fail("start", e)
                raise StartupError(f"Unable to start database: {e}") from e

            self._transition(LifecycleState.ONLINE, "online")

    def stop(self) -> None:
        """Stop the server; a no-op when nothing is running.

        Raises:
            ShutdownTimeoutError: If the process survives a forced kill.
        """
        if self._driver.handle is None and self.state is not LifecycleState.ONLINE:
            logger.debug("stop_ignored", state=self.state.value)
            return

        self._require(LifecycleState.STOPPING)

        with trace_span("embedded_mariadb.stop"):
            self._transition(LifecycleState.STOPPING, "stop requested")
            try:
                self._driver.stop()
            except Exception as e:
                self._fail("stop", e)
                raise

            self._transition(LifecycleState.STOPPED, "stopped")

    def __enter__(self) -> EmbeddedDatabase:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()

    def _stop_at_exit(self) -> None:
        if self._lifecycle.can_transition(LifecycleState.STOPPING):
            self.stop()
        else:
            # Interpreter exit in the middle of start(); no state to record.
            self._driver.stop()

    def _run_bootstrap(self) -> None:
        try:
            result = self._bootstrap.initialize(self._schema_initializer)
        except Exception:
            self._metrics.bootstrap_runs_total.labels(outcome="failed").inc()
            raise

        self._metrics.bootstrap_runs_total.labels(outcome=result.outcome.value).inc()
        logger.info(
            "bootstrap_complete",
            outcome=result.outcome.value,
            previous_version=result.previous_version,
            version=result.version,
        )
        self._last_bootstrap = result

    def _require(self, target: LifecycleState) -> None:
        if not self._lifecycle.can_transition(target):
            raise InvalidStateTransitionError(
                f"Cannot move from {self.state.name} to {target.name}"
            )

    def _transition(self, target: LifecycleState, reason: str) -> None:
        try:
            self._lifecycle.transition(target, reason)
        except InvalidTransition as e:
            raise InvalidStateTransitionError(str(e)) from e
        self._metrics.lifecycle_transitions_total.labels(state=target.value).inc()
        logger.info("lifecycle_transition", state=target.value, reason=reason)

    def _fail(self, operation: str, error: Exception) -> None:
        logger.error(
            "lifecycle_operation_failed",
            operation=operation,
            error=str(error),
            state=self.state.value,
        )
        self._lifecycle.fail(str(error))
        self._metrics.lifecycle_transitions_total.labels(state=LifecycleState.FAILED.value).inc()
