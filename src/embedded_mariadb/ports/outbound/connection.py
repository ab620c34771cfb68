"""SQL connection ports consumed by the lifecycle manager.

The lifecycle manager never speaks the MySQL wire protocol itself. It reaches
the managed server only through these protocols, which callers implement on
top of their driver of choice.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

Row = Mapping[str, Any]


class DatabaseError(Exception):
    """Raised by connection implementations when connecting or executing fails."""

    pass


@dataclass(frozen=True)
class Query:
    """A parameterized SQL statement.

    Parameters bind positionally to ``?`` placeholders; translating them to the
    driver's own paramstyle is the connection implementation's job.

    Example:
        >>> Query("ALTER USER ?@? IDENTIFIED BY ?", ("root", "localhost", "secret"))
    """

    sql: str
    parameters: tuple[Any, ...] = ()

    def __repr__(self) -> str:
        # Parameters may carry passwords.
        return f"Query({self.sql!r}, <{len(self.parameters)} parameters>)"


class DatabaseConnection(Protocol):
    """Protocol for a single open connection to the managed server."""

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute a DDL statement that takes no parameters.

        Raises:
            DatabaseError: If execution fails.
        """
        ...

    @abstractmethod
    def execute_sql(self, query: Query) -> None:
        """Execute a parameterized statement that returns no rows.

        Raises:
            DatabaseError: If execution fails.
        """
        ...

    @abstractmethod
    def query(self, query: Query) -> list[Row]:
        """Execute a statement and return its rows keyed by column name.

        Raises:
            DatabaseError: If execution fails.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Further use is undefined."""
        ...


class ConnectionFactory(Protocol):
    """Protocol for opening connections with explicit credentials."""

    @abstractmethod
    def new_connection(
        self,
        host: str,
        port: int,
        schema: str,
        username: str,
        password: str,
        options: Mapping[str, str],
    ) -> DatabaseConnection:
        """Open a new connection.

        Args:
            host: Server hostname.
            port: Server port.
            schema: Default schema, or ``""`` for none.
            username: Account name.
            password: Account password.
            options: Driver-level connection options.

        Raises:
            DatabaseError: If the connection cannot be established.
        """
        ...
