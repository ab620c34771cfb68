"""Embedded database port and lifecycle error taxonomy.

This inbound port is the API offered to host applications: install the
packaged binaries, start the server, stop it, and inspect versions.

Error handling:
    Every failure surfaced by the lifecycle manager derives from
    EmbeddedDatabaseError. All of them are fatal for the call that raised
    them; there is no automatic retry. The caller recovers by calling
    install() or start() again.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from embedded_mariadb.domain.entities import LifecycleState
from embedded_mariadb.domain.value_objects import Version


class EmbeddedDatabasePort(Protocol):
    """Protocol for managing one embedded server instance.

    Thread Safety:
        Lifecycle calls are synchronous and must come from one supervising
        thread. Concurrent start() calls are refused, not serialized.
    """

    @property
    @abstractmethod
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        ...

    @abstractmethod
    def install(self) -> None:
        """Extract binaries and, on first run, initialize the data directory.

        Raises:
            InstallationError: If any installation step fails.
        """
        ...

    @abstractmethod
    def start(self) -> None:
        """Launch the server, wait until it answers, and bootstrap credentials.

        Raises:
            StartupError: If the server process cannot be launched.
            OnlineTimeoutError: If the server does not answer in time.
            UpgradeError: If a schema upgrade fails.
            BootstrapError: If credential bootstrap fails.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the server; a no-op when nothing is running.

        Raises:
            ShutdownTimeoutError: If the process survives a forced kill.
        """
        ...

    @abstractmethod
    def is_online(self) -> bool:
        """Return True if the server answers a ping query right now."""
        ...

    @abstractmethod
    def is_installation_required(self) -> bool:
        """Return True if install() must run before start()."""
        ...

    @abstractmethod
    def get_installation_version(self) -> Version | None:
        """Return the version of the installed binaries, if any."""
        ...

    @abstractmethod
    def get_data_version(self) -> Version | None:
        """Return the binary version the data directory was last brought up to."""
        ...


class EmbeddedDatabaseError(Exception):
    """Base class for lifecycle failures."""

    pass


class InstallationError(EmbeddedDatabaseError):
    """Raised when binaries cannot be installed or the data directory initialized."""

    pass


class StartupError(EmbeddedDatabaseError):
    """Raised when the server process cannot be launched."""

    pass


class OnlineTimeoutError(EmbeddedDatabaseError):
    """Raised when the server does not answer within the online budget.

    The process is left running so its output can be inspected; call stop()
    to release it.
    """

    pass


class BootstrapError(EmbeddedDatabaseError):
    """Raised when root lock-down or schema initialization fails."""

    pass


class UpgradeError(EmbeddedDatabaseError):
    """Raised when a binary or schema upgrade fails."""

    pass


class ShutdownTimeoutError(EmbeddedDatabaseError):
    """Raised when the server process survives even a forced kill."""

    pass


class InvalidStateTransitionError(EmbeddedDatabaseError):
    """Raised when a lifecycle call is not valid in the current state."""

    pass
