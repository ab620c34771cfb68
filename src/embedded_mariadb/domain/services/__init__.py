"""Domain services for the embedded database.

Exports:
    Resource Installer:
        - ResourceInstaller: Extracts manifest-listed binaries
        - resource_prefix: Resource directory for an OS family
    Version Tracker:
        - VersionTracker: Installation and data-directory version markers
    Configuration Materializer:
        - render_defaults_file / write_defaults_file: ``[mysqld]`` option file
    Connection Channels:
        - Channel: Named credential set used to reach the server
    Online Poller:
        - OnlinePoller: Waits until the server answers ``SELECT 1``
    Credential Bootstrap:
        - CredentialBootstrap: Root lock-down and schema version management
        - BootstrapResult / BootstrapOutcome: What a bootstrap run did
"""

from embedded_mariadb.domain.services.configuration_materializer import (
    SECTION_HEADER,
    render_defaults_file,
    write_defaults_file,
)
from embedded_mariadb.domain.services.connection_channels import (
    Channel,
    application_channel,
    connect,
    default_root_channel,
    first_successful,
    maintenance_channel,
    root_channel,
)
from embedded_mariadb.domain.services.credential_bootstrap import (
    ACCOUNT_HOSTS,
    ROOT_HOSTS,
    BootstrapOutcome,
    BootstrapResult,
    CredentialBootstrap,
    quote_identifier,
)
from embedded_mariadb.domain.services.online_poller import OnlinePoller
from embedded_mariadb.domain.services.resource_installer import (
    ResourceInstaller,
    resource_prefix,
)
from embedded_mariadb.domain.services.version_tracker import VersionTracker

__all__ = [
    "ACCOUNT_HOSTS",
    "BootstrapOutcome",
    "BootstrapResult",
    "Channel",
    "CredentialBootstrap",
    "OnlinePoller",
    "ROOT_HOSTS",
    "ResourceInstaller",
    "SECTION_HEADER",
    "VersionTracker",
    "application_channel",
    "connect",
    "default_root_channel",
    "first_successful",
    "maintenance_channel",
    "quote_identifier",
    "render_defaults_file",
    "resource_prefix",
    "root_channel",
    "write_defaults_file",
]
