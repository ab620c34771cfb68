"""Credential channels for reaching the managed server.

The set of accounts that can log in changes over the lifecycle: right after
installation only an empty-password root may exist, after bootstrap root has
its configured password, and a host application may later lock root down
entirely. Callers that must work in every regime try channels in order.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from embedded_mariadb.domain.entities import ServerProperties
from embedded_mariadb.domain.value_objects import Credentials
from embedded_mariadb.ports.outbound import ConnectionFactory, DatabaseConnection, DatabaseError

T = TypeVar("T")


@dataclass(frozen=True)
class Channel:
    """A named credential set plus the schema to connect into."""

    name: str
    credentials: Credentials
    schema: str = ""


def default_root_channel() -> Channel:
    return Channel("default_root", Credentials.default_root())


def root_channel(properties: ServerProperties) -> Channel:
    return Channel("root", properties.root_credentials)


def application_channel(properties: ServerProperties) -> Channel:
    return Channel("application", properties.credentials, properties.schema)


def maintenance_channel(properties: ServerProperties) -> Channel:
    return Channel("maintenance", properties.maintenance_credentials, properties.schema)


def connect(
    factory: ConnectionFactory,
    properties: ServerProperties,
    channel: Channel,
) -> DatabaseConnection:
    """Open a connection over ``channel``.

    Raises:
        DatabaseError: If the connection cannot be established.
    """
    return factory.new_connection(
        properties.hostname,
        properties.port,
        channel.schema,
        channel.credentials.username,
        channel.credentials.password,
        properties.connection_options,
    )


def first_successful(
    factory: ConnectionFactory,
    properties: ServerProperties,
    channels: Iterable[Channel],
    action: Callable[[DatabaseConnection], T],
) -> tuple[Channel, T] | None:
    """Run ``action`` over each channel until one connects and completes.

    Returns:
        The winning channel and the action's result, or None if every channel
        failed with DatabaseError.
    """
    for channel in channels:
        try:
            with closing(connect(factory, properties, channel)) as connection:
                return channel, action(connection)
        except DatabaseError:
            continue
    return None
