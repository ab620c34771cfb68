"""REST API adapter for the embedded database.

This module provides a FastAPI-based admin API for driving the server
lifecycle and inspecting its state.

Endpoints:
    GET /health - Online check
    GET /status - Lifecycle state and versions
    POST /install - Install binaries and initialize data
    POST /start - Start the server
    POST /stop - Stop the server

Usage:
    from embedded_mariadb.adapters.inbound.rest_api import create_app
    from embedded_mariadb.application import EmbeddedDatabase

    database = EmbeddedDatabase(properties, connection_factory, resources)
    app = create_app(database)
    # Run with uvicorn: uvicorn app:app --host 127.0.0.1 --port 8000

References:
    - FastAPI documentation: https://fastapi.tiangolo.com/
"""

from __future__ import annotations

from typing import Callable

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from embedded_mariadb import __version__
from embedded_mariadb.infrastructure.config import ObservabilityConfig
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.infrastructure.observability import configure_observability
from embedded_mariadb.ports.inbound import (
    EmbeddedDatabaseError,
    EmbeddedDatabasePort,
    InvalidStateTransitionError,
)

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="online or offline")
    version: str = Field(..., description="API version")


class StatusResponse(BaseModel):
    """Response model for lifecycle status."""

    state: str = Field(..., description="Lifecycle state")
    installation_version: str | None = Field(None, description="Installed binary version")
    data_version: str | None = Field(None, description="Data directory version")
    installation_required: bool = Field(..., description="Whether install must run before start")


class LifecycleResponse(BaseModel):
    """Response model for lifecycle operations."""

    success: bool = Field(..., description="Whether the operation succeeded")
    state: str = Field(..., description="Lifecycle state after the operation")
    message: str = Field("", description="Status message")


def _run(database: EmbeddedDatabasePort, operation: str, action: Callable[[], None]) -> LifecycleResponse:
    """Run a lifecycle call, mapping lifecycle errors to HTTP errors."""
    try:
        action()
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EmbeddedDatabaseError as e:
        logger.error("api_operation_failed", operation=operation, error=str(e))
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {e}")

    return LifecycleResponse(
        success=True,
        state=database.state.value,
        message=f"{operation} complete",
    )


def create_app(database: EmbeddedDatabasePort) -> FastAPI:
    """Create a FastAPI application for the embedded database.

    Args:
        database: The lifecycle manager to drive.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="Embedded MariaDB Admin API",
        description="REST API for managing an embedded MariaDB server",
        version=__version__,
    )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check() -> HealthResponse:
        """Report whether the server currently answers queries."""
        return HealthResponse(
            status="online" if database.is_online() else "offline",
            version=__version__,
        )

    @app.get("/status", response_model=StatusResponse, tags=["Status"])
    def get_status() -> StatusResponse:
        """Get lifecycle state and version information."""
        installation_version = database.get_installation_version()
        data_version = database.get_data_version()
        return StatusResponse(
            state=database.state.value,
            installation_version=str(installation_version) if installation_version else None,
            data_version=str(data_version) if data_version else None,
            installation_required=database.is_installation_required(),
        )

    # Lifecycle calls block, so they are plain functions run in the threadpool.
    @app.post("/install", response_model=LifecycleResponse, tags=["Lifecycle"])
    def install() -> LifecycleResponse:
        """Install binaries and initialize the data directory."""
        return _run(database, "install", database.install)

    @app.post("/start", response_model=LifecycleResponse, tags=["Lifecycle"])
    def start() -> LifecycleResponse:
        """Start the server and wait until it is online."""
        return _run(database, "start", database.start)

    @app.post("/stop", response_model=LifecycleResponse, tags=["Lifecycle"])
    def stop() -> LifecycleResponse:
        """Stop the server."""
        return _run(database, "stop", database.stop)

    return app


def run_server(
    database: EmbeddedDatabasePort,
    host: str = "127.0.0.1",
    port: int = 8000,
    observability: ObservabilityConfig | None = None,
) -> None:
    """Run the REST API server.

    Args:
        database: The lifecycle manager.
        host: Host to bind to.
        port: Port to bind to.
        observability: When given, logging, tracing and the metrics exporter
            are configured from it before the server starts.
    """
    import uvicorn

    if observability is not None:
        configure_observability(observability)

    app = create_app(database)
    logger.info("rest_api_starting", host=host, port=port)
    uvicorn.run(app, host=host, port=port, log_config=None)
