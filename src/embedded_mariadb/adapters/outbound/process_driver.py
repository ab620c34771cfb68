"""Process driver - OS-specific install, upgrade, start and stop.

The platform differences are a closed set of three command builders plus the
name of the defaults file, selected once from OperatingSystemType:

    Unix     init.sh <dataDir>          (root password on stdin)
             upgrade.sh <port>          (root password on stdin)
             run.sh
             mysql.conf
    Windows  base/bin/mysql_install_db.exe --datadir=<dir> --password=<pw>
             upgrade.bat <port> <pw>
             run.bat <hostPid>
             my.ini

Scripts live in the installation directory and run with it as the working
directory. Commands carrying the root password on the command line are only
ever logged masked.
"""

from __future__ import annotations

import atexit
import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from embedded_mariadb.adapters.outbound.process_handle import ProcessHandle, ShutdownMode
from embedded_mariadb.domain.entities import ServerProperties
from embedded_mariadb.domain.services.configuration_materializer import write_defaults_file
from embedded_mariadb.domain.services.resource_installer import ResourceInstaller
from embedded_mariadb.domain.services.version_tracker import VersionTracker
from embedded_mariadb.domain.value_objects import OperatingSystemType
from embedded_mariadb.infrastructure.config import TimeoutConfig
from embedded_mariadb.infrastructure.logging import get_logger
from embedded_mariadb.infrastructure.metrics import MetricsRegistry, get_metrics
from embedded_mariadb.ports.inbound import (
    EmbeddedDatabaseError,
    InstallationError,
    StartupError,
    UpgradeError,
)

logger = get_logger(__name__)

MASK = "****"


@dataclass(frozen=True)
class Command:
    """A command line plus what to feed its stdin."""

    argv: tuple[str, ...]
    stdin: str | None = field(default=None, repr=False)
    secrets: tuple[str, ...] = field(default=(), repr=False)

    @property
    def executable(self) -> Path:
        return Path(self.argv[0])

    def display(self) -> str:
        """Render the command for logging with every secret masked."""
        rendered = []
        for argument in self.argv:
            for secret in self.secrets:
                if secret:
                    argument = argument.replace(secret, MASK)
            rendered.append(argument)
        return " ".join(rendered)


@dataclass(frozen=True)
class PlatformStrategy:
    """OS-specific commands and file names."""

    name: str
    config_file_name: str
    initialize: Callable[[ServerProperties], Command]
    upgrade: Callable[[ServerProperties], Command]
    start_command: Callable[[ServerProperties, int], Command]


def _unix_initialize(properties: ServerProperties) -> Command:
    script = properties.installation_directory / "init.sh"
    return Command(
        (str(script), str(properties.data_directory)),
        stdin=properties.root_password + "\n",
    )


def _unix_upgrade(properties: ServerProperties) -> Command:
    script = properties.installation_directory / "upgrade.sh"
    return Command(
        (str(script), str(properties.port)),
        stdin=properties.root_password + "\n",
    )


def _unix_start(properties: ServerProperties, host_pid: int) -> Command:
    return Command((str(properties.installation_directory / "run.sh"),))


def _windows_initialize(properties: ServerProperties) -> Command:
    # mysql_install_db.exe finds its base directory itself and requires the
    # data directory to not exist yet.
    installer = properties.installation_directory / "base" / "bin" / "mysql_install_db.exe"
    return Command(
        (
            str(installer),
            f"--datadir={properties.data_directory}",
            f"--password={properties.root_password}",
        ),
        secrets=(properties.root_password,),
    )


def _windows_upgrade(properties: ServerProperties) -> Command:
    script = properties.installation_directory / "upgrade.bat"
    return Command(
        (str(script), str(properties.port), properties.root_password),
        secrets=(properties.root_password,),
    )


def _windows_start(properties: ServerProperties, host_pid: int) -> Command:
    # run.bat watches the host pid and stops the server if the host dies.
    return Command((str(properties.installation_directory / "run.bat"), str(host_pid)))


UNIX_STRATEGY = PlatformStrategy(
    name="unix",
    config_file_name="mysql.conf",
    initialize=_unix_initialize,
    upgrade=_unix_upgrade,
    start_command=_unix_start,
)

WINDOWS_STRATEGY = PlatformStrategy(
    name="windows",
    config_file_name="my.ini",
    initialize=_windows_initialize,
    upgrade=_windows_upgrade,
    start_command=_windows_start,
)

PLATFORM_STRATEGIES: dict[OperatingSystemType, PlatformStrategy] = {
    OperatingSystemType.LINUX: UNIX_STRATEGY,
    OperatingSystemType.MAC_OSX: UNIX_STRATEGY,
    OperatingSystemType.WINDOWS: WINDOWS_STRATEGY,
}


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _run_to_completion(
    command: Command,
    cwd: Path,
    timeout_seconds: float,
    error_type: type[EmbeddedDatabaseError],
    action: str,
) -> None:
    """Run ``command`` to completion, draining its output to the log.

    The child is always killed on the way out.

    Raises:
        error_type: On launch failure, timeout, or non-zero exit.
    """
    logger.debug("exec", command=command.display())
    try:
        process = subprocess.Popen(
            list(command.argv),
            cwd=cwd,
            stdin=subprocess.PIPE if command.stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise error_type(f"Unable to {action} database. Unable to launch {command.executable.name}.") from e

    handle = ProcessHandle(process, name=command.executable.stem)
    try:
        if command.stdin is not None:
            try:
                handle.write_stdin(command.stdin, close=True)
            except OSError as e:
                logger.debug("stdin_not_delivered", command=command.executable.name, error=str(e))

        try:
            exit_code = handle.wait(timeout=timeout_seconds)
        except subprocess.TimeoutExpired as e:
            raise error_type(f"Unable to {action} database. {action.capitalize()} failed after timeout.") from e

        if exit_code != 0:
            raise error_type(
                f"Unable to {action} database. {command.executable.name} exited with {exit_code}."
            )
    finally:
        handle.kill()
        handle.close()


class ProcessDriver:
    """Runs the packaged scripts and owns the server process.

    A driver owns at most one live ProcessHandle; start() refuses to replace
    it. On first start an ``atexit`` hook is registered so the server is
    stopped when the host interpreter exits.
    """

    def __init__(
        self,
        properties: ServerProperties,
        installer: ResourceInstaller,
        version_tracker: VersionTracker,
        timeouts: TimeoutConfig | None = None,
        metrics: MetricsRegistry | None = None,
        on_shutdown: Callable[[], None] | None = None,
        register_exit_hook: Callable[[Callable[[], None]], object] = atexit.register,
        exit_stop: Callable[[], object] | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            properties: Server properties.
            installer: Extracts packaged binaries.
            version_tracker: Version markers for this installation.
            timeouts: Install, upgrade and shutdown budgets.
            metrics: Metrics registry.
            on_shutdown: Called by the exit hook once the server is stopped.
            register_exit_hook: Registers the exit hook.
            exit_stop: What the exit hook calls to stop the server. Defaults
                to this driver's stop(); the facade passes its own so the
                lifecycle records the shutdown.
        """
        self._properties = properties
        self._installer = installer
        self._version_tracker = version_tracker
        self._timeouts = timeouts or TimeoutConfig()
        self._metrics = metrics or get_metrics()
        self._on_shutdown = on_shutdown
        self._register_exit_hook = register_exit_hook
        self._exit_stop = exit_stop or self.stop
        self._strategy = PLATFORM_STRATEGIES[properties.operating_system]

        self._handle: ProcessHandle | None = None
        self._exit_hook_installed = False

    @property
    def strategy(self) -> PlatformStrategy:
        return self._strategy

    @property
    def config_file(self) -> Path:
        return self._properties.data_directory / self._strategy.config_file_name

    @property
    def handle(self) -> ProcessHandle | None:
        return self._handle

    def is_running(self) -> bool:
        return self._handle is not None and self._handle.is_running()

    def write_config_file(self) -> Path:
        return write_defaults_file(self._properties.server_options(), self.config_file)

    def install(self) -> list[Path]:
        """Install binaries and, when there is no data yet, initialize the data directory.

        Raises:
            InstallationError: If any step fails.
        """
        properties = self._properties
        started = time.monotonic()

        installed = self._installer.install(properties.operating_system, properties.installation_directory)
        self._metrics.resources_installed_total.inc(len(installed))

        packaged_version = self._installer.packaged_version(properties.operating_system)
        if packaged_version is None:
            raise InstallationError(
                f"Packaged version not found for OS: {properties.operating_system}"
            )

        if self._version_tracker.data_exists():
            logger.info("data_directory_exists", data_directory=str(properties.data_directory))
            self._version_tracker.write_data_directory_helper()
            self.write_config_file()
            self._version_tracker.mark_installed(packaged_version)
            return installed

        properties.data_directory.parent.mkdir(parents=True, exist_ok=True)

        command = self._strategy.initialize(properties)
        if not _is_executable(command.executable):
            raise InstallationError("Unable to initialize database. Init script not found.")

        _run_to_completion(
            command,
            properties.installation_directory,
            self._timeouts.install_timeout_seconds,
            InstallationError,
            "initialize",
        )

        # The Windows installer refuses an existing data directory, so the
        # config file is only written once initialization has created it.
        self._version_tracker.write_data_directory_helper()
        self.write_config_file()
        self._version_tracker.mark_installed(packaged_version)
        self._version_tracker.write_data_version()

        logger.info(
            "database_initialized",
            version=str(packaged_version),
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )
        return installed

    def upgrade(self) -> bool:
        """Run the packaged upgrade script against the running server.

        Returns:
            False if the package has no upgrade script, True once it succeeded.

        Raises:
            UpgradeError: On timeout or non-zero exit.
        """
        command = self._strategy.upgrade(self._properties)
        if not _is_executable(command.executable):
            logger.warning("upgrade_script_not_found", path=str(command.executable))
            return False

        _run_to_completion(
            command,
            self._properties.installation_directory,
            self._timeouts.upgrade_timeout_seconds,
            UpgradeError,
            "upgrade",
        )
        return True

    def start(self) -> ProcessHandle:
        """Write the config file and launch the server without waiting for it.

        Raises:
            StartupError: If a server is already running or the run script cannot be launched.
        """
        if self._handle is not None:
            if self._handle.is_running():
                raise StartupError(f"Unable to start database. Process {self._handle.pid} is still running.")
            self._release()

        if not self._exit_hook_installed:
            self._register_exit_hook(self._on_exit)
            self._exit_hook_installed = True

        self.write_config_file()

        command = self._strategy.start_command(self._properties, os.getpid())
        if not _is_executable(command.executable):
            raise StartupError("Unable to start database. Run script not found.")

        logger.debug("exec", command=command.display())
        try:
            handle = ProcessHandle.spawn(
                command.argv,
                cwd=self._properties.installation_directory,
                name="mariadb",
            )
        except OSError as e:
            raise StartupError(f"Unable to start database: {e}") from e

        try:
            self._metrics.process_running.set(1)
            logger.info("database_process_started", pid=handle.pid)
        except Exception:
            handle.kill()
            handle.close()
            raise

        self._handle = handle
        return handle

    def stop(self) -> ShutdownMode | None:
        """Stop the server process; a no-op when none is running.

        Raises:
            ShutdownTimeoutError: If the process survives a forced kill.
        """
        handle = self._handle
        if handle is None:
            return None

        logger.info("shutting_down_database", pid=handle.pid)
        try:
            mode = handle.stop(self._timeouts.shutdown_timeout_seconds)
            self._metrics.shutdowns_total.labels(mode=mode.value).inc()
            logger.info("database_stopped", pid=handle.pid, mode=mode.value)
            return mode
        finally:
            self._release()

    def _release(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
        self._metrics.process_running.set(0)

    def _on_exit(self) -> None:
        handle = self._handle
        try:
            self._exit_stop()
        except Exception as e:
            logger.error("exit_hook_stop_failed", error=str(e))
            if handle is not None:
                handle.kill()
            if self._handle is not None:
                self._release()

        if self._on_shutdown is not None:
            self._on_shutdown()
