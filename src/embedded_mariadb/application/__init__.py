"""Application layer for the embedded database.

The application layer orchestrates domain services and outbound adapters to
fulfil the install/start/stop use cases.

Exports:
    - EmbeddedDatabase: Lifecycle facade for one managed server
"""

from embedded_mariadb.application.embedded_database import EmbeddedDatabase

__all__ = [
    "EmbeddedDatabase",
]
