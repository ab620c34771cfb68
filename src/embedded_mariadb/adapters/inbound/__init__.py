"""Inbound adapters for the embedded database.

Inbound adapters handle incoming requests and convert them to lifecycle
calls.

Exports:
    REST API:
        - create_app: Create a FastAPI admin application
        - run_server: Run the admin API with uvicorn
"""

from embedded_mariadb.adapters.inbound.rest_api import (
    HealthResponse,
    LifecycleResponse,
    StatusResponse,
    create_app,
    run_server,
)

__all__ = [
    "HealthResponse",
    "LifecycleResponse",
    "StatusResponse",
    "create_app",
    "run_server",
]
