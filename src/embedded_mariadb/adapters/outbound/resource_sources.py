"""Resource sources for packaged server binaries.

DirectoryResourceSource reads from a directory tree on disk, which is how
tests and unpacked distributions supply binaries. PackageResourceSource reads
from data files shipped inside an installed Python package.
"""

from __future__ import annotations

from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import BinaryIO

from embedded_mariadb.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _split(path: str) -> list[str]:
    """Split a slash-separated resource path into safe components."""
    parts = [part for part in path.lstrip("/").split("/") if part]
    if any(part == ".." for part in parts):
        raise ValueError(f"Resource path escapes its root: {path}")
    return parts


class DirectoryResourceSource:
    """Reads resources from a directory on disk."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        return self._root.joinpath(*_split(path))

    def open(self, path: str) -> BinaryIO | None:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return None
        return open(file_path, "rb")

    def read_text(self, path: str) -> str | None:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return None
        return file_path.read_text(encoding="utf-8")


class PackageResourceSource:
    """Reads resources bundled as package data, e.g. ``my_app.binaries``."""

    def __init__(self, package: str) -> None:
        self._package = package

    def _resolve(self, path: str) -> Traversable:
        node = resources.files(self._package)
        for part in _split(path):
            node = node.joinpath(part)
        return node

    def open(self, path: str) -> BinaryIO | None:
        node = self._resolve(path)
        if not node.is_file():
            return None
        return node.open("rb")

    def read_text(self, path: str) -> str | None:
        node = self._resolve(path)
        if not node.is_file():
            return None
        return node.read_text(encoding="utf-8")
