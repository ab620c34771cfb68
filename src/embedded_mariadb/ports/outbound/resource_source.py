"""Resource source port for packaged server binaries."""

from __future__ import annotations

from abc import abstractmethod
from typing import BinaryIO, Protocol


class ResourceSource(Protocol):
    """Protocol for reading packaged resources by slash-separated path.

    Paths look like ``mysql/linux/manifest``; a leading slash is ignored.
    """

    @abstractmethod
    def open(self, path: str) -> BinaryIO | None:
        """Open a resource for binary reading.

        Returns:
            An open stream the caller must close, or None if the resource does
            not exist.
        """
        ...

    @abstractmethod
    def read_text(self, path: str) -> str | None:
        """Read a UTF-8 resource, or return None if it does not exist."""
        ...
