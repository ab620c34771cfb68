"""Resource manifest entries.

A manifest is a newline-separated listing packaged next to the server
binaries, one resource per line::

    mysql/linux/run.sh x
    mysql/linux/base/bin/mysqld x
    mysql/linux/base/share/errmsg.sys
    mysql/linux/base/lib/libgalera.so -> libgalera.so.1 l

The trailing token is a flag set when it is made only of flag characters:
``x`` marks the file executable, ``l`` marks a symbolic link whose target
follows ``->`` in the path field. Entry order matters only in that a link's
target should already have been extracted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto
from pathlib import PurePosixPath

LINK_SEPARATOR = " -> "


class ManifestFlag(Flag):
    """Per-entry extraction flags."""

    NONE = 0
    EXECUTABLE = auto()
    SYMLINK = auto()

    @classmethod
    def from_token(cls, token: str) -> ManifestFlag:
        flags = cls.NONE
        if "x" in token:
            flags |= cls.EXECUTABLE
        if "l" in token:
            flags |= cls.SYMLINK
        return flags


def _is_flag_token(token: str) -> bool:
    return bool(token) and set(token) <= {"x", "l"}


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """One manifest line.

    Attributes:
        resource: Resource path inside the resource source, without a leading slash.
        destination: Path relative to the installation directory.
        flags: Extraction flags.
        link_target: Target of the link when ``flags`` contains SYMLINK.
    """

    resource: str
    destination: PurePosixPath
    flags: ManifestFlag = ManifestFlag.NONE
    link_target: str | None = None

    @property
    def is_executable(self) -> bool:
        return bool(self.flags & ManifestFlag.EXECUTABLE)

    @property
    def is_symlink(self) -> bool:
        return bool(self.flags & ManifestFlag.SYMLINK)

    @classmethod
    def parse(cls, line: str, resource_prefix: str) -> ManifestEntry:
        """Parse a single manifest line.

        Args:
            line: The manifest line (without newline).
            resource_prefix: Prefix stripped to form the destination, e.g. ``mysql/linux/``.

        Raises:
            ValueError: If the line is blank, malformed, or escapes the prefix.
        """
        text = line.strip()
        if not text:
            raise ValueError("Empty manifest entry")

        path_field, _, last_token = text.rpartition(" ")
        if path_field and _is_flag_token(last_token):
            flags = ManifestFlag.from_token(last_token)
        else:
            path_field = text
            flags = ManifestFlag.NONE

        link_target = None
        if flags & ManifestFlag.SYMLINK:
            path_field, separator, link_target = path_field.partition(LINK_SEPARATOR)
            if not separator or not link_target.strip():
                raise ValueError(f"Symlink entry missing target: {line!r}")
            link_target = link_target.strip()

        resource = path_field.strip().lstrip("/")
        prefix = resource_prefix.lstrip("/")
        if not resource.startswith(prefix) or resource == prefix:
            raise ValueError(f"Manifest entry {resource!r} is outside {prefix!r}")

        destination = PurePosixPath(resource[len(prefix):])
        if destination.is_absolute() or ".." in destination.parts:
            raise ValueError(f"Manifest entry escapes installation directory: {line!r}")

        return cls(
            resource=resource,
            destination=destination,
            flags=flags,
            link_target=link_target,
        )


def parse_manifest(text: str, resource_prefix: str) -> list[ManifestEntry]:
    """Parse a manifest listing, skipping blank lines and preserving order."""
    return [
        ManifestEntry.parse(line, resource_prefix)
        for line in text.splitlines()
        if line.strip()
    ]
