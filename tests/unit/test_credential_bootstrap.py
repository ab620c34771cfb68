"""Unit tests for CredentialBootstrap and DefaultSchemaInitializer."""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

import pytest

from embedded_mariadb.adapters.outbound import DefaultSchemaInitializer
from embedded_mariadb.domain.services import (
    ACCOUNT_HOSTS,
    BootstrapOutcome,
    CredentialBootstrap,
    quote_identifier,
)
from embedded_mariadb.ports.inbound import BootstrapError, UpgradeError
from embedded_mariadb.ports.outbound import DatabaseError, Query


class VersionedInitializer(DefaultSchemaInitializer):
    """Schema initializer requiring a version above 1."""

    def __init__(self, required: int, upgrade_result: bool = True) -> None:
        super().__init__()
        self._required = required
        self._upgrade_result = upgrade_result
        self.upgrades: list[tuple[int, int]] = []

    @property
    def required_version(self) -> int:
        return self._required

    def on_upgrade(self, connection, previous_version: int, required_version: int) -> bool:
        self.upgrades.append((previous_version, required_version))
        if self._upgrade_result:
            connection.execute_sql(
                Query("INSERT INTO metadata (version, timestamp) VALUES (?, ?)", (required_version, 0))
            )
        return self._upgrade_result


class ForgetfulInitializer(DefaultSchemaInitializer):
    """Schema initializer that never records a version."""

    def initialize_schema(self, connection, properties) -> None:
        connection.execute_ddl("CREATE TABLE IF NOT EXISTS metadata (id INT)")


@pytest.mark.unit
class TestQuoteIdentifier:
    """Tests for identifier quoting."""

    def test_plain(self) -> None:
        assert quote_identifier("shop") == "`shop`"

    def test_backticks_doubled(self) -> None:
        assert quote_identifier("we`ird") == "`we``ird`"


@pytest.mark.unit
class TestCredentialBootstrap:
    """Tests for CredentialBootstrap."""

    @pytest.fixture
    def bootstrap(self, connection_factory, server_properties) -> CredentialBootstrap:
        return CredentialBootstrap(connection_factory, server_properties)

    def test_fresh_server_is_version_zero(self, bootstrap) -> None:
        assert bootstrap.read_schema_version() == 0

    def test_unreachable_server_is_version_zero(self, bootstrap, fake_server) -> None:
        fake_server.online = False
        assert bootstrap.read_schema_version() == 0

    def test_initialize_fresh_server(self, bootstrap, fake_server, server_properties) -> None:
        result = bootstrap.initialize(DefaultSchemaInitializer())

        assert result.outcome is BootstrapOutcome.INITIALIZED
        assert result.previous_version == 0
        assert result.version == 1

        maintenance = server_properties.maintenance_credentials
        assert set(fake_server.accounts) == {
            ("root", "localhost"),
            ("root", "127.0.0.1"),
            ("root", "::1"),
            *((maintenance.username, host) for host in ACCOUNT_HOSTS),
            *(("app", host) for host in ACCOUNT_HOSTS),
        }
        assert all(
            password == server_properties.root_password
            for (user, _host), password in fake_server.accounts.items()
            if user == "root"
        )
        assert "test" not in fake_server.databases
        assert server_properties.schema in fake_server.databases
        assert fake_server.schema_version(server_properties.schema) == 1
        assert fake_server.open_connections == 0

    def test_application_account_is_least_privilege(self, bootstrap, fake_server) -> None:
        bootstrap.initialize(DefaultSchemaInitializer())
        for host in ACCOUNT_HOSTS:
            (grant,) = fake_server.grants[("app", host)]
            assert "ALL PRIVILEGES" not in grant
            assert "SELECT, INSERT, UPDATE, DELETE, EXECUTE" in grant

    @pytest.mark.parametrize("hostname", ["localhost", "127.0.0.1", "::1"])
    def test_accounts_reachable_from_configured_host(
        self, connection_factory, fake_server, server_properties, hostname: str
    ) -> None:
        properties = dataclasses.replace(server_properties, hostname=hostname)

        result = CredentialBootstrap(connection_factory, properties).initialize(DefaultSchemaInitializer())

        assert result.outcome is BootstrapOutcome.INITIALIZED
        maintenance = properties.maintenance_credentials
        assert fake_server.authenticate(maintenance.username, maintenance.password, hostname)
        credentials = properties.credentials
        assert fake_server.authenticate(credentials.username, credentials.password, hostname)

    def test_unreadable_schema_version(self, bootstrap, fake_server, server_properties) -> None:
        bootstrap.initialize(DefaultSchemaInitializer())
        fake_server.metadata[server_properties.schema].append({"id": 2, "version": "two", "timestamp": 0})

        with pytest.raises(BootstrapError, match="Unreadable schema version"):
            bootstrap.read_schema_version()

    def test_second_run_is_skipped(self, bootstrap, fake_server) -> None:
        bootstrap.initialize(DefaultSchemaInitializer())
        statements_after_first_run = len(fake_server.statements)

        result = bootstrap.initialize(DefaultSchemaInitializer())

        assert result.outcome is BootstrapOutcome.SKIPPED
        assert result.version == 1
        assert len(fake_server.statements) == statements_after_first_run

    def test_rerun_after_interrupted_bootstrap_keeps_one_maintenance_account(
        self, bootstrap, fake_server, server_properties
    ) -> None:
        with pytest.raises(BootstrapError, match="did not record a schema version"):
            bootstrap.initialize(ForgetfulInitializer())

        # Root now has its configured password, so the retry falls back to it.
        result = bootstrap.initialize(DefaultSchemaInitializer())

        assert result.outcome is BootstrapOutcome.INITIALIZED
        maintenance = server_properties.maintenance_credentials
        assert sorted(fake_server.accounts_named(maintenance.username)) == sorted(
            (maintenance.username, host) for host in ACCOUNT_HOSTS
        )
        assert sorted(fake_server.accounts_named("app")) == sorted(("app", host) for host in ACCOUNT_HOSTS)

    def test_no_root_connection(self, bootstrap, fake_server) -> None:
        fake_server.accounts = {("root", "localhost"): "something-else"}
        with pytest.raises(BootstrapError, match="Unable to connect as root"):
            bootstrap.initialize(DefaultSchemaInitializer())

    def test_no_root_on_allowed_host(self, bootstrap, fake_server) -> None:
        fake_server.accounts = {("root", "%"): ""}
        with pytest.raises(BootstrapError, match="No root account"):
            bootstrap.initialize(DefaultSchemaInitializer())

    def test_schema_initializer_failure(self, bootstrap) -> None:
        initializer = MagicMock()
        initializer.required_version = 1
        initializer.initialize_schema.side_effect = DatabaseError("syntax error")

        with pytest.raises(BootstrapError, match="Unable to initialize schema"):
            bootstrap.initialize(initializer)

    def test_invalid_required_version(self, bootstrap) -> None:
        initializer = MagicMock()
        initializer.required_version = 0
        with pytest.raises(BootstrapError):
            bootstrap.initialize(initializer)

    def test_upgrade_invoked_once(self, bootstrap, fake_server, server_properties) -> None:
        bootstrap.initialize(DefaultSchemaInitializer())
        initializer = VersionedInitializer(required=2)

        result = bootstrap.initialize(initializer)

        assert result.outcome is BootstrapOutcome.UPGRADED
        assert result.previous_version == 1
        assert result.version == 2
        assert initializer.upgrades == [(1, 2)]

        assert bootstrap.initialize(initializer).outcome is BootstrapOutcome.SKIPPED
        assert initializer.upgrades == [(1, 2)]

    def test_upgrade_declined(self, bootstrap) -> None:
        bootstrap.initialize(DefaultSchemaInitializer())
        with pytest.raises(UpgradeError, match="from v1 to v3"):
            bootstrap.initialize(VersionedInitializer(required=3, upgrade_result=False))

    def test_upgrade_raises(self, bootstrap) -> None:
        bootstrap.initialize(DefaultSchemaInitializer())
        initializer = MagicMock()
        initializer.required_version = 2
        initializer.on_upgrade.side_effect = RuntimeError("migration bug")

        with pytest.raises(UpgradeError, match="migration bug"):
            bootstrap.initialize(initializer)

    def test_default_initializer_refuses_upgrade(self) -> None:
        assert DefaultSchemaInitializer().on_upgrade(MagicMock(), 1, 2) is False

    def test_default_initializer_runs_extra_statements(self, bootstrap, fake_server) -> None:
        statement = "CREATE TABLE IF NOT EXISTS widgets (id INT)"
        bootstrap.initialize(DefaultSchemaInitializer([statement]))
        assert statement in fake_server.statements
