"""Outbound adapters - implementations of outbound ports and OS process control.

Exports:
    Resource sources:
        - DirectoryResourceSource: Reads binaries from a directory tree
        - PackageResourceSource: Reads binaries bundled as package data
    Process control:
        - ProcessDriver: OS-specific install/upgrade/start/stop
        - ProcessHandle: One running child process and its output drain
        - PlatformStrategy: Per-OS commands and config file name
    Schema:
        - DefaultSchemaInitializer: Seeds the metadata version table
"""

from embedded_mariadb.adapters.outbound.default_schema_initializer import DefaultSchemaInitializer
from embedded_mariadb.adapters.outbound.process_driver import (
    PLATFORM_STRATEGIES,
    UNIX_STRATEGY,
    WINDOWS_STRATEGY,
    Command,
    PlatformStrategy,
    ProcessDriver,
)
from embedded_mariadb.adapters.outbound.process_handle import (
    OutputDrain,
    ProcessHandle,
    ShutdownMode,
)
from embedded_mariadb.adapters.outbound.resource_sources import (
    DirectoryResourceSource,
    PackageResourceSource,
)

__all__ = [
    "Command",
    "DefaultSchemaInitializer",
    "DirectoryResourceSource",
    "OutputDrain",
    "PLATFORM_STRATEGIES",
    "PackageResourceSource",
    "PlatformStrategy",
    "ProcessDriver",
    "ProcessHandle",
    "ShutdownMode",
    "UNIX_STRATEGY",
    "WINDOWS_STRATEGY",
]
