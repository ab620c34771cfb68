"""Structured logging for the lifecycle manager.

Events are snake_case names with key/value context, for example
``logger.info("process_started", pid=1234, command="run.sh")``. Anything that
could carry a password is scrubbed by :func:`redact_secrets` before rendering,
so a misplaced ``password=`` keyword never reaches the output.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "<redacted>"

# Logger that receives the child server's stdout/stderr lines.
PROCESS_OUTPUT_LOGGER = "embedded_mariadb.process_output"

_SECRET_KEYS = frozenset({"password", "root_password", "secret"})


def redact_secrets(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
    """Replace credential values in log events before they are rendered."""
    for key in event_dict.keys() & _SECRET_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(level: str = "INFO", log_format: str = "json", stream: TextIO | None = None) -> None:
    """Configure structlog for the host process.

    Child process output is logged at DEBUG under :data:`PROCESS_OUTPUT_LOGGER`,
    so the server's own chatter only shows up when DEBUG is enabled.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: ``json`` for machine-readable lines, ``console`` otherwise.
        stream: Where rendered lines go. Defaults to stdout.
    """
    numeric_level = logging.getLevelNamesMapping()[level.upper()]
    output = stream or sys.stdout

    logging.basicConfig(format="%(message)s", stream=output, level=numeric_level, force=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Return a structlog logger, optionally bound to ``initial_context``."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger
