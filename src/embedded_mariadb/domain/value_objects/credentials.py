"""Account credentials used to reach the managed server."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

ROOT_USERNAME = "root"

# MariaDB accepts 80 characters, MySQL 32; stay within the smaller limit.
MAX_USERNAME_LENGTH = 32

MAINTENANCE_SUFFIX = "_maintenance"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Username and password, optionally scoped to a schema.

    The password is excluded from ``repr`` so credentials can be logged or
    shown in tracebacks without exposing secrets.
    """

    username: str
    password: str = field(default="", repr=False)
    schema: str | None = None

    @classmethod
    def default_root(cls) -> Credentials:
        """Root with an empty password, as left behind by a fresh install."""
        return cls(username=ROOT_USERNAME, password="")

    @classmethod
    def root(cls, password: str) -> Credentials:
        """Root with the configured password."""
        return cls(username=ROOT_USERNAME, password=password)

    @classmethod
    def maintenance(cls, schema: str, root_password: str) -> Credentials:
        """Derive the schema-scoped maintenance account.

        The derivation is deterministic so every start reaches the same account
        without persisting its password anywhere.
        """
        username = (schema + MAINTENANCE_SUFFIX)[:MAX_USERNAME_LENGTH]
        digest = hashlib.sha256(f"{schema}:{root_password}".encode("utf-8")).hexdigest()
        return cls(username=username, password=digest[:32], schema=schema)
