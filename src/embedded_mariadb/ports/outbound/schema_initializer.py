"""Schema initializer port.

The application owns its schema. The bootstrap hands it a maintenance
connection once on first run, and again whenever the stored schema version is
behind ``required_version``.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol

from embedded_mariadb.ports.outbound.connection import DatabaseConnection

if TYPE_CHECKING:
    from embedded_mariadb.domain.entities import ServerProperties


class SchemaInitializer(Protocol):
    """Protocol for application schema creation and upgrade callbacks."""

    @property
    @abstractmethod
    def required_version(self) -> int:
        """Schema version this build of the application expects (>= 1)."""
        ...

    @abstractmethod
    def initialize_schema(
        self,
        connection: DatabaseConnection,
        properties: ServerProperties,
    ) -> None:
        """Create the application schema and seed the ``metadata`` version table.

        Raises:
            DatabaseError: If any statement fails.
        """
        ...

    @abstractmethod
    def on_upgrade(
        self,
        connection: DatabaseConnection,
        previous_version: int,
        required_version: int,
    ) -> bool:
        """Upgrade the schema from ``previous_version`` to ``required_version``.

        Returns:
            True if the upgrade succeeded.
        """
        ...
