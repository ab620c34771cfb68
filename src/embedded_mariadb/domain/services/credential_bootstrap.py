"""Credential bootstrap initializer.

Runs after the server first comes online and decides, from the application
schema version stored in ``<schema>.metadata``, what has to happen:

    version 0          -> lock down root, drop sample schema, create the
                          schema plus maintenance/application accounts, then
                          hand off to SchemaInitializer.initialize_schema
    0 < v < required   -> SchemaInitializer.on_upgrade
    v >= required      -> nothing

Once a version >= 1 is recorded the lock-down never runs again, so restarting
over an initialized data directory is always safe. Every account statement is
idempotent (DROP of strays, CREATE IF NOT EXISTS + ALTER + GRANT), so a crash
before the version row is written simply repeats the bootstrap on next start.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from enum import Enum

from embedded_mariadb.domain.entities import ServerProperties
from embedded_mariadb.domain.services.connection_channels import (
    Channel,
    application_channel,
    connect,
    default_root_channel,
    first_successful,
    maintenance_channel,
    root_channel,
)
from embedded_mariadb.domain.value_objects import ROOT_USERNAME, Credentials
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.ports.inbound import BootstrapError, EmbeddedDatabaseError, UpgradeError
from embedded_mariadb.ports.outbound import (
    ConnectionFactory,
    DatabaseConnection,
    DatabaseError,
    Query,
    SchemaInitializer,
)

logger = get_logger(__name__)

# Hosts root may log in from once bootstrap completes.
ROOT_HOSTS: tuple[str, ...] = ("localhost", "127.0.0.1", "::1")
# Hosts the maintenance and application accounts are created for. A client
# reaching "localhost" arrives over the socket as @localhost, while TCP
# loopback clients arrive as @127.0.0.1 or @::1.
ACCOUNT_HOSTS: tuple[str, ...] = ROOT_HOSTS
SAMPLE_SCHEMA = "test"

APPLICATION_PRIVILEGES = "SELECT, INSERT, UPDATE, DELETE, EXECUTE"


def quote_identifier(name: str) -> str:
    """Quote a schema or table name for interpolation into SQL."""
    return "`" + name.replace("`", "``") + "`"


def schema_version_query(schema: str) -> Query:
    return Query(f"SELECT version FROM {quote_identifier(schema)}.metadata ORDER BY id DESC LIMIT 1")


class BootstrapOutcome(Enum):
    """What a bootstrap run did."""
    INITIALIZED = "initialized"
    UPGRADED = "upgraded"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BootstrapResult:
    """Outcome of a bootstrap run."""
    outcome: BootstrapOutcome
    previous_version: int
    version: int


class CredentialBootstrap:
    """Secures a fresh server and keeps the application schema at the required version."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        properties: ServerProperties,
    ) -> None:
        self._connection_factory = connection_factory
        self._properties = properties

    def read_schema_version(self) -> int:
        """Read the stored application schema version.

        Tries root first, then the empty-password root, then the application
        account. A missing table, a missing row, or every channel failing
        reads as 0.

        Raises:
            BootstrapError: If the stored version is not an integer.
        """
        query = schema_version_query(self._properties.schema)

        def _read(connection: DatabaseConnection) -> int:
            rows = connection.query(query)
            if not rows:
                return 0
            try:
                return int(rows[0]["version"])
            except (KeyError, TypeError, ValueError) as e:
                raise BootstrapError(
                    f"Unreadable schema version in {self._properties.schema}.metadata: {e!r}"
                ) from e

        result = first_successful(
            self._connection_factory,
            self._properties,
            [
                root_channel(self._properties),
                default_root_channel(),
                application_channel(self._properties),
            ],
            _read,
        )
        if result is None:
            return 0
        return result[1]

    def initialize(self, schema_initializer: SchemaInitializer) -> BootstrapResult:
        """Bring credentials and the application schema up to date.

        Raises:
            BootstrapError: If lock-down or schema initialization fails, or the
                schema version is still below 1 afterwards.
            UpgradeError: If the upgrade callback fails or declines.
        """
        required_version = schema_initializer.required_version
        if required_version < 1:
            raise BootstrapError(f"Required schema version must be at least 1, got {required_version}")

        previous_version = self.read_schema_version()

        if previous_version < 1:
            logger.info("bootstrapping_database", schema=self._properties.schema)
            self._bootstrap(schema_initializer)
            outcome = BootstrapOutcome.INITIALIZED
        elif previous_version < required_version:
            logger.info(
                "upgrading_schema",
                previous_version=previous_version,
                required_version=required_version,
            )
            self._upgrade(schema_initializer, previous_version, required_version)
            outcome = BootstrapOutcome.UPGRADED
        else:
            outcome = BootstrapOutcome.SKIPPED

        version = self.read_schema_version()
        if version < 1:
            raise BootstrapError("Database initialization did not record a schema version.")

        return BootstrapResult(outcome=outcome, previous_version=previous_version, version=version)

    def _bootstrap(self, schema_initializer: SchemaInitializer) -> None:
        with closing(self._open_root_connection()) as connection:
            try:
                self._restrict_root_account(connection)
                self._harden(connection)
                connection.execute_ddl(
                    f"CREATE DATABASE IF NOT EXISTS {quote_identifier(self._properties.schema)}"
                )
                self._ensure_account(
                    connection,
                    self._properties.maintenance_credentials,
                    "ALL PRIVILEGES",
                )
                self._ensure_account(
                    connection,
                    self._properties.credentials,
                    APPLICATION_PRIVILEGES,
                )
                connection.execute_sql(Query("FLUSH PRIVILEGES"))
            except DatabaseError as e:
                logger.error("bootstrap_failed", error=str(e))
                raise BootstrapError(f"Unable to secure database accounts: {e}") from e

        try:
            with closing(self._open(maintenance_channel(self._properties))) as connection:
                schema_initializer.initialize_schema(connection, self._properties)
        except EmbeddedDatabaseError:
            raise
        except Exception as e:
            logger.error("schema_initialization_failed", error=str(e))
            raise BootstrapError(f"Unable to initialize schema: {e}") from e

    def _upgrade(
        self,
        schema_initializer: SchemaInitializer,
        previous_version: int,
        required_version: int,
    ) -> None:
        try:
            with closing(self._open(maintenance_channel(self._properties))) as connection:
                upgraded = schema_initializer.on_upgrade(connection, previous_version, required_version)
        except EmbeddedDatabaseError:
            raise
        except Exception as e:
            logger.error("schema_upgrade_failed", error=str(e))
            raise UpgradeError(
                f"Unable to upgrade database from v{previous_version} to v{required_version}: {e}"
            ) from e

        if not upgraded:
            raise UpgradeError(
                f"Unable to upgrade database from v{previous_version} to v{required_version}."
            )

    def _open(self, channel: Channel) -> DatabaseConnection:
        try:
            return connect(self._connection_factory, self._properties, channel)
        except DatabaseError as e:
            raise BootstrapError(f"Unable to connect as {channel.name}: {e}") from e

    def _open_root_connection(self) -> DatabaseConnection:
        """Connect as root, preferring the empty password a fresh install leaves behind."""
        try:
            return connect(self._connection_factory, self._properties, default_root_channel())
        except DatabaseError:
            # The installer already set the root password.
            logger.debug("default_root_connection_refused")
        return self._open(root_channel(self._properties))

    def _restrict_root_account(self, connection: DatabaseConnection) -> None:
        """Drop every account except root on an allowed host, then set root's password."""
        accounts = connection.query(Query("SELECT user, host FROM mysql.user"))

        root_hosts: list[str] = []
        for account in accounts:
            user, host = account["user"], account["host"]
            if user == ROOT_USERNAME and host in ROOT_HOSTS:
                root_hosts.append(host)
                continue
            logger.debug("dropping_account", user=user, host=host)
            connection.execute_sql(Query("DROP USER ?@?", (user, host)))

        if not root_hosts:
            raise BootstrapError("No root account remains on an allowed host.")

        connection.execute_sql(Query("FLUSH PRIVILEGES"))

        for host in root_hosts:
            connection.execute_sql(
                Query(
                    "ALTER USER ?@? IDENTIFIED BY ?",
                    (ROOT_USERNAME, host, self._properties.root_password),
                )
            )

        connection.execute_sql(Query("FLUSH PRIVILEGES"))

    def _harden(self, connection: DatabaseConnection) -> None:
        connection.execute_ddl(f"DROP DATABASE IF EXISTS {quote_identifier(SAMPLE_SCHEMA)}")

    def _ensure_account(
        self,
        connection: DatabaseConnection,
        credentials: Credentials,
        privileges: str,
    ) -> None:
        grant = f"GRANT {privileges} ON {quote_identifier(self._properties.schema)}.* TO ?@?"
        for host in ACCOUNT_HOSTS:
            parameters = (credentials.username, host, credentials.password)
            connection.execute_sql(Query("CREATE USER IF NOT EXISTS ?@? IDENTIFIED BY ?", parameters))
            connection.execute_sql(Query("ALTER USER ?@? IDENTIFIED BY ?", parameters))
            connection.execute_sql(Query(grant, (credentials.username, host)))
