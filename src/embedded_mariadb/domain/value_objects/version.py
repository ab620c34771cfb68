"""Semantic version value object for server binaries and data directories."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True, slots=True)
class Version:
    """A (major, minor, patch) triple with total ordering.

    Ordering compares fields left to right, so ``Version(10, 5, 9) <
    Version(10, 11, 0)``. Equal versions mean no upgrade is needed.

    Example:
        >>> Version.parse("10.5.8")
        Version(major=10, minor=5, patch=8)
        >>> str(Version(1, 1, 0))
        '1.1.0'
    """

    major: int
    minor: int = 0
    patch: int = 0

    def __post_init__(self) -> None:
        """Validate the version components."""
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``MAJOR[.MINOR[.PATCH]]``, ignoring surrounding whitespace.

        Missing trailing components default to 0.

        Raises:
            ValueError: If the text is not a dotted version of 1-3 integers.
        """
        stripped = text.strip()
        parts = stripped.split(".")
        if not stripped or len(parts) > 3:
            raise ValueError(f"Invalid version string: {text!r}")

        try:
            numbers = [int(part) for part in parts]
        except ValueError:
            raise ValueError(f"Invalid version string: {text!r}") from None

        return cls(*numbers)


# Sentinel for "uninstalled" / "uninitialized" comparisons
ZERO_VERSION = Version(0, 0, 0)
