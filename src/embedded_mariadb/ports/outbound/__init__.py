"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for the systems the lifecycle manager
depends on: SQL connections to the managed server, the application's schema
callbacks, and the source of packaged binaries.
"""

from embedded_mariadb.ports.outbound.connection import (
    ConnectionFactory,
    DatabaseConnection,
    DatabaseError,
    Query,
    Row,
)
from embedded_mariadb.ports.outbound.resource_source import ResourceSource
from embedded_mariadb.ports.outbound.schema_initializer import SchemaInitializer

__all__ = [
    "ConnectionFactory",
    "DatabaseConnection",
    "DatabaseError",
    "Query",
    "ResourceSource",
    "Row",
    "SchemaInitializer",
]
