"""Default schema initializer.

Creates the ``metadata`` version table, runs optional caller statements, and
records schema version 1. It never upgrades: a host application that evolves
its schema supplies its own SchemaInitializer.
"""

from __future__ import annotations

import time
from typing import Iterable

from embedded_mariadb.domain.entities import ServerProperties
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.ports.outbound import DatabaseConnection, Query

logger = get_logger(__name__)

METADATA_TABLE_DDL = (
    "CREATE TABLE IF NOT EXISTS metadata ("
    "id INT AUTO_INCREMENT PRIMARY KEY, "
    "version INT NOT NULL, "
    "timestamp BIGINT NOT NULL)"
)
INSERT_VERSION_SQL = "INSERT INTO metadata (version, timestamp) VALUES (?, ?)"


class DefaultSchemaInitializer:
    """Schema initializer that only seeds the version table."""

    def __init__(self, statements: Iterable[str] = ()) -> None:
        """Initialize with extra DDL statements run before the version row is written."""
        self._statements = tuple(statements)

    @property
    def required_version(self) -> int:
        return 1

    def initialize_schema(
        self,
        connection: DatabaseConnection,
        properties: ServerProperties,
    ) -> None:
        logger.info("initializing_schema", schema=properties.schema, statements=len(self._statements))
        connection.execute_ddl(METADATA_TABLE_DDL)
        for statement in self._statements:
            connection.execute_ddl(statement)
        connection.execute_sql(
            Query(INSERT_VERSION_SQL, (self.required_version, int(time.time() * 1000)))
        )

    def on_upgrade(
        self,
        connection: DatabaseConnection,
        previous_version: int,
        required_version: int,
    ) -> bool:
        logger.warning(
            "schema_upgrade_unsupported",
            previous_version=previous_version,
            required_version=required_version,
        )
        return False
