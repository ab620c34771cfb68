"""Operating system families with packaged server binaries."""

from __future__ import annotations

import sys
from enum import Enum


class OperatingSystemType(Enum):
    """Operating system family. The value names the resource directory."""

    LINUX = "linux"
    MAC_OSX = "osx"
    WINDOWS = "windows"

    def __str__(self) -> str:
        return self.value

    @property
    def is_unix(self) -> bool:
        return self is not OperatingSystemType.WINDOWS

    @classmethod
    def detect(cls, platform: str | None = None) -> OperatingSystemType:
        """Detect the family from ``sys.platform`` (or the given platform string).

        Raises:
            ValueError: If no binaries are packaged for the platform.
        """
        platform = platform or sys.platform
        if platform.startswith(("win32", "cygwin")):
            return cls.WINDOWS
        if platform.startswith("darwin"):
            return cls.MAC_OSX
        if platform.startswith("linux"):
            return cls.LINUX
        raise ValueError(f"Unsupported operating system: {platform}")
