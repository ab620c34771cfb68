"""Inbound ports - APIs offered to host applications."""

from embedded_mariadb.ports.inbound.embedded_database import (
    BootstrapError,
    EmbeddedDatabaseError,
    EmbeddedDatabasePort,
    InstallationError,
    InvalidStateTransitionError,
    OnlineTimeoutError,
    ShutdownTimeoutError,
    StartupError,
    UpgradeError,
)

__all__ = [
    "BootstrapError",
    "EmbeddedDatabaseError",
    "EmbeddedDatabasePort",
    "InstallationError",
    "InvalidStateTransitionError",
    "OnlineTimeoutError",
    "ShutdownTimeoutError",
    "StartupError",
    "UpgradeError",
]
