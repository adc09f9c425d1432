"""Invocation of the external mirroring tool.

This module provides:
- build_arguments: Argument vector for one destination
- ProcessRunner: Spawns the tool and waits for its exit code

Arguments are always passed as a list, never as a shell string, so paths
with spaces or shell metacharacters reach the tool unchanged.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import IO, TYPE_CHECKING

from mirrorsync.core.errors import SyncCancelledError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mirrorsync.core.config import SyncPlan

logger = logging.getLogger(__name__)

SIMULATE_FLAG = "/L"
EXCLUDE_DIR_FLAG = "/XD"

DEFAULT_POLL_INTERVAL = 0.5  # seconds between cancellation checks
DEFAULT_TERMINATE_TIMEOUT = 10.0  # seconds before a terminated child is killed


def build_arguments(
    plan: SyncPlan,
    destination: Path,
    simulate: bool = False,
) -> list[str]:
    """Build the tool arguments for one destination.

    Args:
        plan: The sync plan.
        destination: Destination root to mirror into.
        simulate: Append the list-only flag (dry run).

    Returns:
        Arguments, excluding the executable itself.
    """
    arguments = [str(plan.source_path), str(destination), *plan.tool_options]
    for exclusion in plan.exclusions:
        arguments.extend((EXCLUDE_DIR_FLAG, exclusion))
    if simulate:
        arguments.append(SIMULATE_FLAG)
    return arguments


class ProcessRunner:
    """Runs the mirroring tool as a child process.

    One call to run() spawns exactly one child and blocks until it exits.
    The exit code is returned as-is: interpreting it is the caller's job.

    Usage:
        runner = ProcessRunner()
        code = runner.run("robocopy", build_arguments(plan, dest))
    """

    def __init__(
        self,
        cancel_event: threading.Event | None = None,
        capture_output: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
    ) -> None:
        """Initialize the runner.

        Args:
            cancel_event: When set, the running child is terminated and
                SyncCancelledError is raised.
            capture_output: Forward the tool's output to the log at DEBUG
                level instead of discarding it.
            poll_interval: Seconds between cancellation checks.
            terminate_timeout: Grace period before a terminated child is killed.
        """
        self._cancel_event = cancel_event
        self._capture_output = capture_output
        self._poll_interval = poll_interval
        self._terminate_timeout = terminate_timeout

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def run(self, executable: str, arguments: Sequence[str]) -> int:
        """Run the tool and wait for it to exit.

        Args:
            executable: Tool executable (name on PATH or full path).
            arguments: Argument vector, excluding the executable.

        Returns:
            The child's exit code.

        Raises:
            SyncCancelledError: If cancellation was requested.
            OSError: If the executable cannot be started.
        """
        if self.cancel_requested:
            raise SyncCancelledError("Cancelled before starting the mirroring tool")

        argv = [executable, *arguments]
        logger.debug(f"Running: {subprocess.list2cmdline(argv)}")

        output = subprocess.PIPE if self._capture_output else subprocess.DEVNULL
        process = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=output,
            stderr=subprocess.STDOUT if self._capture_output else subprocess.DEVNULL,
            text=True,
            errors="replace",
        )

        reader: threading.Thread | None = None
        if self._capture_output and process.stdout is not None:
            reader = threading.Thread(
                target=self._forward_output,
                args=(process.stdout, Path(executable).name),
                name=f"ProcessRunner-output-{process.pid}",
                daemon=True,
            )
            reader.start()

        try:
            return self._wait(process)
        finally:
            if reader is not None:
                reader.join(timeout=self._terminate_timeout)

    def _wait(self, process: subprocess.Popen[str]) -> int:
        """Wait for the child, terminating it if cancellation is requested."""
        if self._cancel_event is None:
            return process.wait()

        while True:
            try:
                return process.wait(timeout=self._poll_interval)
            except subprocess.TimeoutExpired:
                if self._cancel_event.is_set():
                    self._terminate(process)
                    raise SyncCancelledError(
                        f"Mirroring tool (pid {process.pid}) terminated on request"
                    ) from None

    def _terminate(self, process: subprocess.Popen[str]) -> None:
        logger.warning(f"Terminating mirroring tool (pid {process.pid})")
        process.terminate()
        try:
            process.wait(timeout=self._terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Mirroring tool (pid {process.pid}) did not exit, killing it")
            process.kill()
            process.wait()

    @staticmethod
    def _forward_output(stream: IO[str], tool_name: str) -> None:
        with stream:
            for line in stream:
                line = line.rstrip()
                if line:
                    logger.debug(f"[{tool_name}] {line}")
