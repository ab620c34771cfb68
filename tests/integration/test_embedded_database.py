"""Integration tests for the EmbeddedDatabase lifecycle facade.

Shell scripts stand in for the packaged server and an in-memory fake stands
in for the SQL connection, so the full install/start/stop path runs without
a real MariaDB.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from embedded_mariadb.application import EmbeddedDatabase
from embedded_mariadb.adapters.outbound import DefaultSchemaInitializer, DirectoryResourceSource
from embedded_mariadb.domain.entities import LifecycleState
from embedded_mariadb.domain.services import BootstrapOutcome, VersionTracker
from embedded_mariadb.domain.value_objects import Version
from embedded_mariadb.infrastructure.config import TimeoutConfig
from embedded_mariadb.ports.inbound import (
    InstallationError,
    InvalidStateTransitionError,
    OnlineTimeoutError,
    StartupError,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")


def _set_packaged_version(resource_root: Path, version: str) -> None:
    (resource_root / "mysql" / "linux" / ".version").write_text(version + "\n")


class MisconfiguredInitializer(DefaultSchemaInitializer):
    """Schema initializer whose version lookup itself blows up."""

    @property
    def required_version(self) -> int:
        raise RuntimeError("initializer misconfigured")


class DriverSpecificError(Exception):
    """Error type of a third-party driver that knows nothing of DatabaseError."""


class ForeignErrorFactory:
    """Connection factory that fails with its own exception type."""

    def new_connection(self, host, port, schema, username, password, options):
        raise DriverSpecificError(f"connection to {host}:{port} reset")


@pytest.mark.integration
class TestEmbeddedDatabase:
    """End-to-end lifecycle tests."""

    @pytest.fixture
    def exit_hooks(self) -> list:
        return []

    @pytest.fixture
    def make_database(
        self, server_properties, connection_factory, resource_root, fast_timeouts, metrics_registry, exit_hooks
    ):
        created: list[EmbeddedDatabase] = []

        def make(
            timeouts: TimeoutConfig = fast_timeouts,
            schema_initializer=None,
            factory=connection_factory,
            on_shutdown=None,
        ) -> EmbeddedDatabase:
            database = EmbeddedDatabase(
                server_properties,
                factory,
                DirectoryResourceSource(resource_root),
                schema_initializer=schema_initializer,
                timeouts=timeouts,
                metrics=metrics_registry,
                on_shutdown=on_shutdown,
                register_exit_hook=exit_hooks.append,
            )
            created.append(database)
            return database

        yield make

        for database in created:
            database.driver.stop()

    def test_fresh_install(self, make_database, server_properties) -> None:
        database = make_database()
        assert database.state is LifecycleState.NOT_INSTALLED
        assert database.is_installation_required()

        database.install()

        assert database.state is LifecycleState.INSTALLED
        assert not database.is_installation_required()
        assert database.get_installation_version() == Version(1, 0, 0)
        assert database.get_data_version() == Version(1, 0, 0)
        assert (server_properties.installation_directory / "run.sh").is_file()

    def test_start_and_stop(self, make_database, fake_server, server_properties, metrics_registry) -> None:
        database = make_database()

        database.start()

        assert database.state is LifecycleState.ONLINE
        assert database.driver.is_running()
        assert database.is_online()
        assert database.last_bootstrap is not None
        assert database.last_bootstrap.outcome is BootstrapOutcome.INITIALIZED
        assert fake_server.schema_version(server_properties.schema) == 1

        database.stop()

        assert database.state is LifecycleState.STOPPED
        assert not database.driver.is_running()
        registry = metrics_registry.registry
        assert registry.get_sample_value("mariadb_shutdowns_total", {"mode": "graceful"}) == 1.0
        assert registry.get_sample_value("mariadb_bootstrap_runs_total", {"outcome": "initialized"}) == 1.0

    def test_start_installs_when_required(self, make_database) -> None:
        database = make_database()
        database.start()
        states = [change.state for change in database.history]
        assert states[:4] == [
            LifecycleState.NOT_INSTALLED,
            LifecycleState.INSTALLED,
            LifecycleState.STARTING,
            LifecycleState.ONLINE,
        ]

    def test_restart_skips_bootstrap(self, make_database) -> None:
        database = make_database()
        database.start()
        database.stop()

        database.start()

        assert database.state is LifecycleState.ONLINE
        assert database.last_bootstrap.outcome is BootstrapOutcome.SKIPPED

    def test_upgrade_passes_through_upgrading(self, make_database, resource_root, server_properties) -> None:
        first = make_database()
        first.start()
        first.stop()
        assert first.get_data_version() == Version(1, 0, 0)

        _set_packaged_version(resource_root, "1.1.0")
        database = make_database()
        assert database.is_installation_required()

        database.start()

        states = [change.state for change in database.history]
        assert LifecycleState.UPGRADING in states
        assert states.index(LifecycleState.UPGRADING) < states.index(LifecycleState.ONLINE)
        assert database.get_installation_version() == Version(1, 1, 0)
        assert database.get_data_version() == Version(1, 1, 0)
        assert (
            VersionTracker.read(server_properties.data_directory)
            <= VersionTracker.read(server_properties.installation_directory)
        )

    def test_missing_upgrade_script_keeps_data_version(self, make_database, resource_root) -> None:
        first = make_database()
        first.start()
        first.stop()

        manifest = resource_root / "mysql" / "linux" / "manifest"
        manifest.write_text(manifest.read_text().replace("mysql/linux/upgrade.sh x\n", ""))
        _set_packaged_version(resource_root, "1.1.0")
        database = make_database()
        (database.properties.installation_directory / "upgrade.sh").unlink()

        database.start()

        assert database.state is LifecycleState.ONLINE
        assert database.get_data_version() == Version(1, 0, 0)

    def test_start_while_online_is_rejected(self, make_database) -> None:
        database = make_database()
        database.start()

        with pytest.raises(InvalidStateTransitionError):
            database.start()

        assert database.state is LifecycleState.ONLINE

    def test_stop_without_process_is_noop(self, make_database) -> None:
        database = make_database()
        database.stop()
        assert database.state is LifecycleState.NOT_INSTALLED

    def test_online_timeout_leaves_process_for_stop(self, make_database, fake_server, fast_timeouts) -> None:
        fake_server.online = False
        database = make_database(
            fast_timeouts.model_copy(update={"online_timeout_seconds": 0.3})
        )

        with pytest.raises(OnlineTimeoutError):
            database.start()

        assert database.state is LifecycleState.FAILED
        assert database.driver.is_running()

        database.stop()

        assert database.state is LifecycleState.STOPPED
        assert not database.driver.is_running()

    def test_install_failure_moves_to_failed(self, make_database, resource_root, script_writer) -> None:
        script_writer(resource_root / "mysql" / "linux" / "init.sh", "#!/bin/sh\nexit 1\n")
        database = make_database()

        with pytest.raises(InstallationError):
            database.install()

        assert database.state is LifecycleState.FAILED
        assert database.get_installation_version() is None

    def test_context_manager(self, make_database) -> None:
        database = make_database()
        with database as running:
            assert running.state is LifecycleState.ONLINE
        assert database.state is LifecycleState.STOPPED

    def test_collaborator_failure_moves_to_failed_and_stop_still_works(self, make_database) -> None:
        database = make_database(schema_initializer=MisconfiguredInitializer())

        with pytest.raises(StartupError, match="initializer misconfigured"):
            database.start()

        assert database.state is LifecycleState.FAILED
        assert "initializer misconfigured" in database.error_message
        assert database.driver.is_running()

        database.stop()

        assert database.state is LifecycleState.STOPPED
        assert not database.driver.is_running()

    def test_foreign_connection_error_moves_to_failed(self, make_database, metrics_registry) -> None:
        database = make_database(factory=ForeignErrorFactory())

        with pytest.raises(StartupError, match="connection to 127.0.0.1:3307 reset") as exc_info:
            database.start()

        assert isinstance(exc_info.value.__cause__, DriverSpecificError)
        assert database.state is LifecycleState.FAILED
        database.stop()
        assert database.state is LifecycleState.STOPPED

    def test_unexpected_install_error_moves_to_failed(self, make_database, monkeypatch) -> None:
        database = make_database()
        monkeypatch.setattr(database.driver, "install", MagicMock(side_effect=RuntimeError("disk gremlin")))

        with pytest.raises(InstallationError, match="disk gremlin"):
            database.install()

        assert database.state is LifecycleState.FAILED

    def test_exit_hook_records_shutdown(self, make_database, exit_hooks, metrics_registry) -> None:
        on_shutdown = MagicMock()
        database = make_database(on_shutdown=on_shutdown)
        database.start()

        (hook,) = exit_hooks
        hook()

        assert database.state is LifecycleState.STOPPED
        states = [change.state for change in database.history]
        assert states[-2:] == [LifecycleState.STOPPING, LifecycleState.STOPPED]
        assert not database.driver.is_running()
        on_shutdown.assert_called_once_with()
        registry = metrics_registry.registry
        assert registry.get_sample_value("mariadb_lifecycle_transitions_total", {"state": "stopped"}) == 1.0
