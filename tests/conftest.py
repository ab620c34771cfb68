"""Pytest configuration and fixtures for embedded_mariadb tests."""

from __future__ import annotations

import re
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator, Mapping

import pytest
from prometheus_client import CollectorRegistry

from embedded_mariadb.domain.entities import ServerProperties
from embedded_mariadb.domain.value_objects import Credentials, OperatingSystemType
from embedded_mariadb.infrastructure.config import TimeoutConfig
from embedded_mariadb.infrastructure.metrics import MetricsRegistry
from embedded_mariadb.ports.outbound import DatabaseError, Query

ROOT_PASSWORD = "r00t-secret"
APP_USERNAME = "app"
APP_PASSWORD = "app-secret"
SCHEMA = "app_schema"

INIT_SCRIPT = """#!/bin/sh
read password
mkdir -p "$1/mysql"
echo "initialized $1"
"""

RUN_SCRIPT = """#!/bin/sh
echo "server started"
while read line; do
    if [ "$line" = "exit" ]; then
        echo "server exiting"
        exit 0
    fi
done
"""

UPGRADE_SCRIPT = """#!/bin/sh
read password
echo "upgraded tables on port $1"
"""

MYSQLD_FRAGMENTS = (b"\x7fELF-fragment-0|", b"fragment-1|", b"fragment-2")


def write_script(path: Path, contents: str) -> Path:
    """Write an executable shell script."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def build_resource_tree(root: Path, version: str = "1.0.0") -> Path:
    """Lay out packaged Linux binaries under ``root``.

    ``base/bin/mysqld`` is only present as fragments.
    """
    prefix = root / "mysql" / "linux"
    write_script(prefix / "init.sh", INIT_SCRIPT)
    write_script(prefix / "run.sh", RUN_SCRIPT)
    write_script(prefix / "upgrade.sh", UPGRADE_SCRIPT)

    bin_dir = prefix / "base" / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    for index, fragment in enumerate(MYSQLD_FRAGMENTS):
        (bin_dir / f"mysqld.part{index}").write_bytes(fragment)

    share_dir = prefix / "base" / "share"
    share_dir.mkdir(parents=True, exist_ok=True)
    (share_dir / "errmsg.sys").write_bytes(b"errors")

    (prefix / "manifest").write_text(
        "\n".join(
            [
                "mysql/linux/init.sh x",
                "mysql/linux/run.sh x",
                "mysql/linux/upgrade.sh x",
                "mysql/linux/base/bin/mysqld x",
                "/mysql/linux/base/share/errmsg.sys",
                "",
            ]
        ),
        encoding="utf-8",
    )
    (prefix / ".version").write_text(version + "\n", encoding="utf-8")
    return root


# =============================================================================
# In-memory MariaDB
# =============================================================================

_IDENTIFIER = re.compile(r"`((?:[^`]|``)+)`")


def _identifier(sql: str) -> str:
    match = _IDENTIFIER.search(sql)
    if match is None:
        raise DatabaseError(f"No identifier in: {sql}")
    return match.group(1).replace("``", "`")


@dataclass
class FakeMariaDbServer:
    """A tiny stand-in for a freshly initialized server.

    Understands exactly the statements the lifecycle manager issues.
    """

    online: bool = True
    accounts: dict[tuple[str, str], str] = field(default_factory=dict)
    databases: set[str] = field(default_factory=lambda: {"mysql", "test"})
    metadata: dict[str, list[dict[str, int]]] = field(default_factory=dict)
    grants: dict[tuple[str, str], set[str]] = field(default_factory=dict)
    statements: list[str] = field(default_factory=list)
    connection_attempts: list[tuple[str, str]] = field(default_factory=list)
    open_connections: int = 0

    def __post_init__(self) -> None:
        if not self.accounts:
            self.accounts = {
                ("root", "localhost"): "",
                ("root", "127.0.0.1"): "",
                ("root", "::1"): "",
                ("root", "%"): "",
                ("", "localhost"): "",
                ("", "build-host"): "",
            }

    def authenticate(self, username: str, password: str, client_host: str) -> bool:
        """Match the way MySQL picks an account row.

        Only rows for ``client_host`` or ``%`` are considered, the most
        specific host wins, and an anonymous user on that host shadows a named
        user on ``%``. Only the chosen row's password is checked.
        """
        candidates = [
            (host == client_host, user == username, secret)
            for (user, host), secret in self.accounts.items()
            if host in (client_host, "%") and user in (username, "")
        ]
        if not candidates:
            return False
        *_, secret = max(candidates, key=lambda candidate: candidate[:2])
        return secret == password

    def accounts_named(self, username: str) -> list[tuple[str, str]]:
        return [account for account in self.accounts if account[0] == username]

    def schema_version(self, schema: str) -> int:
        rows = self.metadata.get(schema)
        return rows[-1]["version"] if rows else 0


class FakeConnection:
    """Connection to a FakeMariaDbServer."""

    def __init__(self, server: FakeMariaDbServer, username: str, schema: str) -> None:
        self._server = server
        self.username = username
        self.schema = schema
        self.closed = False
        server.open_connections += 1

    def _check_open(self) -> None:
        if self.closed:
            raise DatabaseError("Connection is closed")
        if not self._server.online:
            raise DatabaseError("Lost connection to server")

    def execute_ddl(self, sql: str) -> None:
        self._check_open()
        server = self._server
        server.statements.append(sql)
        if sql.startswith("DROP DATABASE IF EXISTS"):
            server.databases.discard(_identifier(sql))
        elif sql.startswith("CREATE DATABASE IF NOT EXISTS"):
            server.databases.add(_identifier(sql))
        elif sql.startswith("CREATE TABLE IF NOT EXISTS metadata"):
            if self.schema not in server.databases:
                raise DatabaseError(f"Unknown database '{self.schema}'")
            server.metadata.setdefault(self.schema, [])
        elif sql.startswith("CREATE TABLE"):
            pass
        else:
            raise DatabaseError(f"Unsupported DDL: {sql}")

    def execute_sql(self, query: Query) -> None:
        self._check_open()
        server = self._server
        sql, parameters = query.sql, query.parameters
        server.statements.append(sql)
        if sql == "FLUSH PRIVILEGES":
            return
        if sql == "DROP USER ?@?":
            if tuple(parameters) not in server.accounts:
                raise DatabaseError(f"Operation DROP USER failed for {parameters}")
            del server.accounts[tuple(parameters)]
            server.grants.pop(tuple(parameters), None)
        elif sql == "ALTER USER ?@? IDENTIFIED BY ?":
            user, host, password = parameters
            if (user, host) not in server.accounts:
                raise DatabaseError(f"Operation ALTER USER failed for {user}@{host}")
            server.accounts[(user, host)] = password
        elif sql == "CREATE USER IF NOT EXISTS ?@? IDENTIFIED BY ?":
            user, host, password = parameters
            server.accounts.setdefault((user, host), password)
        elif sql.startswith("GRANT "):
            user, host = parameters
            if (user, host) not in server.accounts:
                raise DatabaseError(f"Can't find any matching row in the user table for {user}@{host}")
            server.grants.setdefault((user, host), set()).add(sql)
        elif sql.startswith("INSERT INTO metadata"):
            if self.schema not in server.metadata:
                raise DatabaseError(f"Table '{self.schema}.metadata' doesn't exist")
            rows = server.metadata[self.schema]
            rows.append({"id": len(rows) + 1, "version": parameters[0], "timestamp": parameters[1]})
        else:
            raise DatabaseError(f"Unsupported statement: {sql}")

    def query(self, query: Query) -> list[Mapping[str, Any]]:
        self._check_open()
        server = self._server
        sql = query.sql
        if sql == "SELECT 1":
            return [{"1": 1}]
        if sql == "SELECT user, host FROM mysql.user":
            return [{"user": user, "host": host} for user, host in server.accounts]
        if sql.startswith("SELECT version FROM"):
            schema = _identifier(sql)
            if schema not in server.metadata:
                raise DatabaseError(f"Table '{schema}.metadata' doesn't exist")
            rows = sorted(server.metadata[schema], key=lambda row: row["id"], reverse=True)
            return [{"version": row["version"]} for row in rows[:1]]
        raise DatabaseError(f"Unsupported query: {sql}")

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._server.open_connections -= 1


class FakeConnectionFactory:
    """ConnectionFactory over a FakeMariaDbServer."""

    def __init__(self, server: FakeMariaDbServer) -> None:
        self.server = server

    def new_connection(
        self,
        host: str,
        port: int,
        schema: str,
        username: str,
        password: str,
        options: Mapping[str, str],
    ) -> FakeConnection:
        self.server.connection_attempts.append((username, schema))
        if not self.server.online:
            raise DatabaseError(f"Can't connect to server on '{host}' ({port})")
        if not self.server.authenticate(username, password, host):
            raise DatabaseError(f"Access denied for user '{username}'@'{host}'")
        if schema and schema not in self.server.databases:
            raise DatabaseError(f"Unknown database '{schema}'")
        return FakeConnection(self.server, username, schema)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def fast_timeouts() -> TimeoutConfig:
    """Provide short lifecycle budgets."""
    return TimeoutConfig(
        install_timeout_seconds=10.0,
        upgrade_timeout_seconds=10.0,
        online_timeout_seconds=2.0,
        shutdown_timeout_seconds=5.0,
        poll_interval_seconds=0.1,
    )


@pytest.fixture
def script_writer():
    """Provide the executable-script helper."""
    return write_script


@pytest.fixture
def resource_root(temp_dir: Path) -> Path:
    """Provide a packaged binary tree for Linux at version 1.0.0."""
    return build_resource_tree(temp_dir / "resources")


@pytest.fixture
def server_properties(temp_dir: Path) -> ServerProperties:
    """Provide server properties rooted in the temporary directory."""
    return ServerProperties(
        root_password=ROOT_PASSWORD,
        credentials=Credentials(APP_USERNAME, APP_PASSWORD, SCHEMA),
        schema=SCHEMA,
        installation_directory=temp_dir / "install",
        data_directory=temp_dir / "var" / "data",
        operating_system=OperatingSystemType.LINUX,
        port=3307,
    )


@pytest.fixture
def fake_server() -> FakeMariaDbServer:
    """Provide a freshly initialized in-memory server."""
    return FakeMariaDbServer()


@pytest.fixture
def connection_factory(fake_server: FakeMariaDbServer) -> FakeConnectionFactory:
    """Provide a connection factory over the in-memory server."""
    return FakeConnectionFactory(fake_server)


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "posix: Tests that run POSIX shell scripts")
