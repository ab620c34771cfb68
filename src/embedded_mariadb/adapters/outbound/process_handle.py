"""Child process ownership for the managed server.

A ProcessHandle owns one ``subprocess.Popen`` together with the OutputDrain
thread that forwards the child's merged stdout/stderr to the log. Stopping
escalates from the graceful ``exit`` sentinel on stdin, to terminate, to kill.
"""

from __future__ import annotations

import subprocess
import threading
import time
from enum import Enum
from pathlib import Path
from typing import IO, Sequence

from embedded_mariadb.infrastructure.logging import PROCESS_OUTPUT_LOGGER, get_logger
from embedded_mariadb.ports.inbound import ShutdownTimeoutError

logger = get_logger(__name__)
output_logger = get_logger(PROCESS_OUTPUT_LOGGER)

EXIT_SENTINEL = "exit\n"
# Upper bound on waiting for a killed child to be reaped.
KILL_WAIT_SECONDS = 5.0


class ShutdownMode(Enum):
    """How a child process ended up stopping."""
    GRACEFUL = "graceful"
    TERMINATED = "terminated"
    KILLED = "killed"


class OutputDrain(threading.Thread):
    """Daemon thread that logs each line of a child's output until EOF."""

    def __init__(self, stream: IO[str], name: str) -> None:
        super().__init__(name=f"{name}-output", daemon=True)
        self._stream = stream
        self._source = name
        self.lines_read = 0

    def run(self) -> None:
        try:
            for line in self._stream:
                self.lines_read += 1
                output_logger.debug("process_output", source=self._source, line=line.rstrip("\r\n"))
        except (OSError, ValueError) as e:
            # The stream was closed underneath us during shutdown.
            logger.debug("process_output_closed", source=self._source, error=str(e))
        finally:
            try:
                self._stream.close()
            except OSError:
                pass


class ProcessHandle:
    """A running child process and its output drain."""

    def __init__(self, process: subprocess.Popen, name: str = "mariadb") -> None:
        self._process = process
        self._name = name
        if process.stdout is None:
            raise ValueError("Process stdout must be piped")
        self._drain = OutputDrain(process.stdout, name)
        self._drain.start()

    @classmethod
    def spawn(
        cls,
        command: Sequence[str],
        cwd: Path | None = None,
        name: str = "mariadb",
    ) -> ProcessHandle:
        """Launch ``command`` without waiting for it.

        stdin and stdout are piped; stderr is merged into stdout.

        Raises:
            OSError: If the process cannot be launched.
        """
        process = subprocess.Popen(
            list(command),
            cwd=cwd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        return cls(process, name)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def drain(self) -> OutputDrain:
        return self._drain

    def is_running(self) -> bool:
        return self._process.poll() is None

    def write_stdin(self, text: str, close: bool = False) -> None:
        """Write ``text`` to the child's stdin, optionally closing it afterwards.

        Raises:
            OSError: If the pipe is already broken.
        """
        stdin = self._process.stdin
        if stdin is None or stdin.closed:
            raise BrokenPipeError("Process stdin is closed")
        stdin.write(text)
        stdin.flush()
        if close:
            stdin.close()

    def wait(self, timeout: float | None = None) -> int:
        """Wait for the child to exit.

        Raises:
            subprocess.TimeoutExpired: If it is still running after ``timeout``.
        """
        return self._process.wait(timeout=timeout)

    def stop(self, timeout_seconds: float) -> ShutdownMode:
        """Stop the child, escalating until it exits.

        Sends the exit sentinel and waits up to ``timeout_seconds`` for the
        child to leave on its own, then terminates it, then kills it.

        Raises:
            ShutdownTimeoutError: If the child survives the kill.
        """
        deadline = time.monotonic() + timeout_seconds

        try:
            self.write_stdin(EXIT_SENTINEL, close=True)
        except OSError as e:
            logger.debug("exit_sentinel_not_delivered", pid=self.pid, error=str(e))

        self._drain.join(timeout_seconds)

        try:
            self._process.wait(timeout=max(0.0, deadline - time.monotonic()))
            return ShutdownMode.GRACEFUL
        except subprocess.TimeoutExpired:
            logger.warning("terminating_process", pid=self.pid)

        self._process.terminate()
        try:
            self._process.wait(timeout=timeout_seconds)
            return ShutdownMode.TERMINATED
        except subprocess.TimeoutExpired:
            logger.warning("killing_process", pid=self.pid)

        self._process.kill()
        try:
            self._process.wait(timeout=KILL_WAIT_SECONDS)
        except subprocess.TimeoutExpired as e:
            raise ShutdownTimeoutError(
                f"Unable to stop database. Process {self.pid} survived a forced kill."
            ) from e
        return ShutdownMode.KILLED

    def kill(self) -> None:
        """Kill the child immediately and reap it if possible."""
        if self._process.poll() is not None:
            return
        self._process.kill()
        try:
            self._process.wait(timeout=KILL_WAIT_SECONDS)
        except subprocess.TimeoutExpired:
            logger.error("process_kill_timeout", pid=self.pid)

    def close(self) -> None:
        """Release pipes once the child has exited."""
        stdin = self._process.stdin
        if stdin is not None and not stdin.closed:
            try:
                stdin.close()
            except OSError:
                pass
        self._drain.join(1.0)
