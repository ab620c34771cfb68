"""Configuration materializer - renders the server defaults file.

The file is rewritten on every start, so rendering must be deterministic:
identical option sets always produce byte-identical text.

Format::

    [mysqld]
    skip-name-resolve
    port=3306
    max_connections=200
"""

from __future__ import annotations

from pathlib import Path

from embedded_mariadb.domain.entities import ServerOptions
from embedded_mariadb.infrastructure.logging import get_logger

logger = get_logger(__name__)

SECTION_HEADER = "[mysqld]"


def render_defaults_file(options: ServerOptions) -> str:
    """Render ``options`` as a ``[mysqld]`` defaults file."""
    lines = [SECTION_HEADER]
    for argument in options.to_arguments():
        lines.append(argument[2:] if argument.startswith("--") else argument)
    return "\n".join(lines) + "\n"


def write_defaults_file(options: ServerOptions, path: Path) -> Path:
    """Render ``options`` and write them to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("writing_config_file", path=str(path))
    path.write_text(render_defaults_file(options), encoding="utf-8", newline="\n")
    return path
