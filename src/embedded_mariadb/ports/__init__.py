"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: APIs offered to host applications (EmbeddedDatabasePort)
- Outbound ports: Dependencies on external systems (ConnectionFactory,
  SchemaInitializer, ResourceSource)

Adapters implement these ports with concrete functionality.
"""

from embedded_mariadb.ports.inbound import (
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
from embedded_mariadb.ports.outbound import (
    ConnectionFactory,
    DatabaseConnection,
    DatabaseError,
    Query,
    ResourceSource,
    Row,
    SchemaInitializer,
)

__all__ = [
    # Inbound ports
    "BootstrapError",
    "EmbeddedDatabaseError",
    "EmbeddedDatabasePort",
    "InstallationError",
    "InvalidStateTransitionError",
    "OnlineTimeoutError",
    "ShutdownTimeoutError",
    "StartupError",
    "UpgradeError",
    # Outbound ports
    "ConnectionFactory",
    "DatabaseConnection",
    "DatabaseError",
    "Query",
    "ResourceSource",
    "Row",
    "SchemaInitializer",
]
