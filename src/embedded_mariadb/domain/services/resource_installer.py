"""Resource installer - extracts packaged server binaries.

Reads the OS-specific manifest from a ResourceSource and copies every listed
resource into the installation directory, preserving relative paths.

Fragmented resources:
    Large binaries may be packaged as numbered fragments (``mysqld.part0``,
    ``mysqld.part1``, ...) to stay under hosting size limits. When the whole
    resource is absent, fragments are streamed in ascending order into a
    single destination file until the first missing index.

Failure model:
    A missing manifest, a missing resource, or any copy/chmod failure aborts
    the installation with InstallationError. There is no partial-success
    continuation; a subsequent install() starts over and overwrites.
"""

from __future__ import annotations

import os
import shutil
import stat
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO

from embedded_mariadb.domain.entities import ManifestEntry, parse_manifest
from embedded_mariadb.domain.value_objects import OperatingSystemType, Version
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.ports.inbound import InstallationError
from embedded_mariadb.ports.outbound import ResourceSource

logger = get_logger(__name__)

MANIFEST_NAME = "manifest"
VERSION_RESOURCE_NAME = ".version"
FRAGMENT_SUFFIX = ".part"


def resource_prefix(operating_system: OperatingSystemType) -> str:
    """Return the resource directory holding binaries for ``operating_system``."""
    return f"mysql/{operating_system}/"


class ResourceInstaller:
    """Installs manifest-listed resources into a destination directory."""

    def __init__(self, source: ResourceSource) -> None:
        self._source = source

    def read_manifest(self, operating_system: OperatingSystemType) -> list[ManifestEntry]:
        """Read and parse the manifest for ``operating_system``.

        Raises:
            InstallationError: If the manifest is missing, blank, or malformed.
        """
        prefix = resource_prefix(operating_system)
        manifest = self._source.read_text(prefix + MANIFEST_NAME)
        if manifest is None or not manifest.strip():
            raise InstallationError(f"Manifest not found for OS: {operating_system}")

        try:
            return parse_manifest(manifest, prefix)
        except ValueError as e:
            raise InstallationError(f"Invalid manifest for OS {operating_system}: {e}") from e

    def packaged_version(self, operating_system: OperatingSystemType) -> Version | None:
        """Return the server version packaged for ``operating_system``, if declared."""
        text = self._source.read_text(resource_prefix(operating_system) + VERSION_RESOURCE_NAME)
        if text is None or not text.strip():
            return None
        try:
            return Version.parse(text)
        except ValueError as e:
            raise InstallationError(f"Invalid packaged version for OS {operating_system}: {e}") from e

    def install(self, operating_system: OperatingSystemType, destination_dir: Path) -> list[Path]:
        """Copy every manifest entry into ``destination_dir``.

        Args:
            operating_system: Selects the manifest.
            destination_dir: Installation directory; created if missing.

        Returns:
            Installed paths in manifest order.

        Raises:
            InstallationError: On any failure.
        """
        entries = self.read_manifest(operating_system)
        destination_dir = Path(destination_dir)
        destination_dir.mkdir(parents=True, exist_ok=True)

        installed: list[Path] = []
        for entry in entries:
            destination = destination_dir.joinpath(*entry.destination.parts)
            if entry.is_symlink:
                self._install_symlink(entry, destination)
            else:
                self._install_file(entry, destination)
            installed.append(destination)

        logger.info(
            "resources_installed",
            operating_system=str(operating_system),
            count=len(installed),
            destination=str(destination_dir),
        )
        return installed

    def _install_file(self, entry: ManifestEntry, destination: Path) -> None:
        logger.debug("extracting_resource", resource=entry.resource, destination=str(destination))

        with ExitStack() as stack:
            streams = self._open_streams(entry.resource, stack)
            if not streams:
                raise InstallationError(f"Unable to copy resource: {entry.resource}")

            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                if destination.is_symlink():
                    destination.unlink()
                with open(destination, "wb") as output:
                    for stream in streams:
                        shutil.copyfileobj(stream, output)
            except OSError as e:
                raise InstallationError(f"Unable to copy resource: {entry.resource}") from e

        if entry.is_executable:
            try:
                mode = destination.stat().st_mode
                os.chmod(destination, mode | stat.S_IXUSR)
            except OSError as e:
                raise InstallationError(f"Unable to set file flags: {entry.resource}") from e

    def _open_streams(self, resource: str, stack: ExitStack) -> list[BinaryIO]:
        """Open the whole resource, or all of its fragments in order."""
        whole = self._source.open(resource)
        if whole is not None:
            return [stack.enter_context(whole)]

        fragments: list[BinaryIO] = []
        index = 0
        while True:
            fragment = self._source.open(f"{resource}{FRAGMENT_SUFFIX}{index}")
            if fragment is None:
                break
            fragments.append(stack.enter_context(fragment))
            index += 1

        if fragments:
            logger.debug("reassembling_fragments", resource=resource, fragments=len(fragments))
        return fragments

    def _install_symlink(self, entry: ManifestEntry, destination: Path) -> None:
        assert entry.link_target is not None
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if destination.is_symlink() or destination.exists():
                destination.unlink()
        except OSError as e:
            raise InstallationError(f"Unable to copy resource: {entry.resource}") from e

        try:
            os.symlink(entry.link_target, destination)
        except (OSError, NotImplementedError) as e:
            logger.warning(
                "symlink_unsupported",
                link=str(destination),
                target=entry.link_target,
                error=str(e),
            )
