"""Domain entities for the embedded database."""

from embedded_mariadb.domain.entities.lifecycle import (
    InvalidTransition,
    LifecycleState,
    LifecycleStateMachine,
    StateChange,
)
from embedded_mariadb.domain.entities.manifest import (
    ManifestEntry,
    ManifestFlag,
    parse_manifest,
)
from embedded_mariadb.domain.entities.server_properties import (
    DEFAULT_PORT,
    ServerOptions,
    ServerProperties,
)

__all__ = [
    "DEFAULT_PORT",
    "InvalidTransition",
    "LifecycleState",
    "LifecycleStateMachine",
    "ManifestEntry",
    "ManifestFlag",
    "ServerOptions",
    "ServerProperties",
    "StateChange",
    "parse_manifest",
]
