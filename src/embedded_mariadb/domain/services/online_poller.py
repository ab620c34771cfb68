"""Online-wait poller.

Pings the server with ``SELECT 1`` until one credential channel answers.
The channel order is default root, configured root, then the application
account, so the poller works both before and after credential bootstrap
without knowing which regime it is in.
"""

from __future__ import annotations

import time
from typing import Callable

from embedded_mariadb.domain.entities import ServerProperties
from embedded_mariadb.domain.services.connection_channels import (
    Channel,
    application_channel,
    default_root_channel,
    first_successful,
    root_channel,
)
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.ports.inbound import OnlineTimeoutError
from embedded_mariadb.ports.outbound import ConnectionFactory, DatabaseConnection, Query

logger = get_logger(__name__)

PING_QUERY = Query("SELECT 1")
DEFAULT_POLL_INTERVAL_SECONDS = 0.1


def _ping(connection: DatabaseConnection) -> bool:
    connection.query(PING_QUERY)
    return True


class OnlinePoller:
    """Waits for the server to accept queries."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        properties: ServerProperties,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the poller.

        Args:
            connection_factory: Opens ping connections.
            properties: Server endpoint and credentials.
            poll_interval_seconds: Delay between ping rounds.
            clock: Monotonic clock, injectable for tests.
            sleep: Sleep function, injectable for tests.
        """
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        self._connection_factory = connection_factory
        self._properties = properties
        self._poll_interval = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def channels(self) -> list[Channel]:
        return [
            default_root_channel(),
            root_channel(self._properties),
            application_channel(self._properties),
        ]

    def ping(self) -> Channel | None:
        """Run one ping round; return the channel that answered, if any."""
        result = first_successful(
            self._connection_factory,
            self._properties,
            self.channels(),
            _ping,
        )
        return result[0] if result is not None else None

    def is_online(self) -> bool:
        return self.ping() is not None

    def wait_until_online(self, timeout_seconds: float) -> float:
        """Block until the server answers a ping.

        Returns:
            Seconds spent waiting.

        Raises:
            OnlineTimeoutError: If no channel answered within ``timeout_seconds``.
        """
        started = self._clock()
        while True:
            channel = self.ping()
            elapsed = self._clock() - started
            if channel is not None:
                logger.info("database_online", channel=channel.name, elapsed_seconds=round(elapsed, 3))
                return elapsed

            if elapsed >= timeout_seconds:
                raise OnlineTimeoutError(
                    f"Server failed to come online after {timeout_seconds * 1000:.0f}ms."
                )

            self._sleep(min(self._poll_interval, timeout_seconds - elapsed))
