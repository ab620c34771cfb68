"""Version tracker - binary and data-directory version markers.

Both the installation directory and the data directory carry a ``.version``
file holding a single ``MAJOR.MINOR.PATCH`` line. The installation marker
records which binaries are extracted; the data marker records which binary
version last brought the data files up to date. A data marker behind the
installation marker means the server tables need upgrading.
"""

from __future__ import annotations

import os
from pathlib import Path

from embedded_mariadb.domain.value_objects import ZERO_VERSION, Version
from embedded_mariadb.infrastructure.logging import get_logger

logger = get_logger(__name__)

VERSION_FILE_NAME = ".version"
DATA_DIRECTORY_HELPER_NAME = ".datadir"
# The system schema directory only exists once the data directory is initialized.
SYSTEM_SCHEMA_DIRECTORY = "mysql"


class VersionTracker:
    """Reads and writes version markers for one installation/data pair."""

    def __init__(
        self,
        installation_directory: Path,
        data_directory: Path,
        packaged_version: Version | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            installation_directory: Binary installation directory.
            data_directory: Server data directory.
            packaged_version: Version shipped with this build, if known.
        """
        self._installation_directory = Path(installation_directory)
        self._data_directory = Path(data_directory)
        self._packaged_version = packaged_version

    @property
    def packaged_version(self) -> Version | None:
        return self._packaged_version

    @staticmethod
    def read(directory: Path) -> Version | None:
        """Read the version marker in ``directory``; None if absent or unreadable."""
        version_file = Path(directory) / VERSION_FILE_NAME
        try:
            contents = version_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            return Version.parse(contents)
        except ValueError:
            logger.warning("version_file_unparseable", path=str(version_file))
            return None

    @staticmethod
    def write(directory: Path, version: Version) -> None:
        """Write the version marker in ``directory``, replacing it atomically."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        version_file = directory / VERSION_FILE_NAME
        temporary = version_file.with_name(VERSION_FILE_NAME + ".tmp")
        temporary.write_text(f"{version}\n", encoding="utf-8")
        os.replace(temporary, version_file)

    def installation_version(self) -> Version | None:
        return self.read(self._installation_directory)

    def data_version(self) -> Version | None:
        return self.read(self._data_directory)

    def data_exists(self) -> bool:
        """Return True if the data directory has been initialized."""
        return (self._data_directory / SYSTEM_SCHEMA_DIRECTORY).is_dir()

    def is_installed(self) -> bool:
        """Return True if the current binaries are installed over initialized data.

        An installation older than the packaged version counts as not
        installed, so it gets refreshed.
        """
        installed_version = self.installation_version()
        if installed_version is None:
            return False

        if self._packaged_version is not None and installed_version < self._packaged_version:
            return False

        return self.data_exists()

    def upgrade_required(self) -> bool:
        """Return True if the data files lag behind the installed binaries."""
        installed_version = self.installation_version()
        if installed_version is None:
            return False
        return (self.data_version() or ZERO_VERSION) < installed_version

    def mark_installed(self, version: Version) -> None:
        self.write(self._installation_directory, version)

    def write_data_version(self) -> None:
        """Record the installed binary version in the data directory."""
        installed_version = self.installation_version()
        if installed_version is None:
            raise ValueError("No installation version to copy into the data directory")
        self.write(self._data_directory, installed_version)

    def write_data_directory_helper(self) -> None:
        """Store the data directory's location, relative to the installation, for the run scripts."""
        relative = os.path.relpath(
            self._data_directory.resolve(),
            self._installation_directory.resolve(),
        )
        self._installation_directory.mkdir(parents=True, exist_ok=True)
        helper = self._installation_directory / DATA_DIRECTORY_HELPER_NAME
        helper.write_text(relative, encoding="utf-8")
