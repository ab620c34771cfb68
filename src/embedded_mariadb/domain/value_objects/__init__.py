"""Value objects for the embedded database domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    - Version: Ordered (major, minor, patch) triple for binaries and data
    - ZERO_VERSION: Sentinel compared against when no version file exists
    - Credentials: Username/password pair with optional schema scope
    - OperatingSystemType: Family selecting the packaged binaries
"""

from embedded_mariadb.domain.value_objects.credentials import (
    ROOT_USERNAME,
    Credentials,
)
from embedded_mariadb.domain.value_objects.operating_system import OperatingSystemType
from embedded_mariadb.domain.value_objects.version import ZERO_VERSION, Version

__all__ = [
    "Credentials",
    "OperatingSystemType",
    "ROOT_USERNAME",
    "Version",
    "ZERO_VERSION",
]
