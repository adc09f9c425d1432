"""Retry logic with exponential backoff for real-run copies.

A Failure verdict from the mirroring tool is retried after a pause that grows
by the policy's multiplier. Success and SuccessWithWarnings end the loop.
Exit-code failures never raise; only faults from the runner itself propagate.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from mirrorsync.core.errors import SyncCancelledError
from mirrorsync.core.types import Verdict
from mirrorsync.sync.classifier import classify, describe
from mirrorsync.sync.runner import build_arguments
from mirrorsync.sync.types import DestinationTask, ExecutionResult

if TYPE_CHECKING:
    from pathlib import Path

    from mirrorsync.core.config import RetryPolicy, SyncPlan
    from mirrorsync.sync.runner import ProcessRunner

logger = logging.getLogger(__name__)


class RetryExecutor:
    """Runs the mirroring tool for one destination until it succeeds or
    the retry budget is spent.

    Usage:
        executor = RetryExecutor(ProcessRunner())
        result = executor.execute(Path("D:/backup"), plan, RetryPolicy())
    """

    def __init__(
        self,
        runner: ProcessRunner,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the executor.

        Args:
            runner: Runner used for each attempt.
            cancel_event: When set, pending backoff pauses end early and
                SyncCancelledError is raised.
            sleep: Pause function used when no cancel event is given.
        """
        self._runner = runner
        self._cancel_event = cancel_event
        self._sleep = sleep

    def execute(
        self,
        destination: Path,
        plan: SyncPlan,
        policy: RetryPolicy,
    ) -> ExecutionResult:
        """Mirror the plan's source into one destination with retries.

        Args:
            destination: Destination root.
            plan: The sync plan.
            policy: Retry budget and backoff settings.

        Returns:
            A non-Failure result as soon as an attempt succeeds, otherwise a
            Failure result carrying the last exit code.

        Raises:
            SyncCancelledError: If cancellation was requested.
        """
        arguments = build_arguments(plan, destination)
        task = DestinationTask(destination=destination)
        start_time = time.monotonic()

        while True:
            exit_code = self._runner.run(plan.tool_path, arguments)
            verdict = classify(exit_code)

            if verdict != Verdict.FAILURE:
                logger.info(
                    f"{destination}: attempt {task.attempt}/{policy.max_attempts} "
                    f"succeeded with exit code {exit_code} ({describe(exit_code)})"
                )
                return ExecutionResult(
                    destination=destination,
                    verdict=verdict,
                    exit_code=exit_code,
                    attempts=task.attempt,
                    duration=time.monotonic() - start_time,
                )

            if task.attempt > policy.max_retries:
                logger.error(
                    f"{destination}: all {policy.max_attempts} attempts failed, "
                    f"last exit code {exit_code} ({describe(exit_code)})"
                )
                return ExecutionResult(
                    destination=destination,
                    verdict=verdict,
                    exit_code=exit_code,
                    attempts=task.attempt,
                    error_detail=(
                        f"Retries exhausted after {task.attempt} attempts; "
                        f"last exit code {exit_code} ({describe(exit_code)})"
                    ),
                    duration=time.monotonic() - start_time,
                )

            delay = policy.delay_for(task.attempt)
            logger.warning(
                f"{destination}: attempt {task.attempt}/{policy.max_attempts} failed "
                f"with exit code {exit_code} ({describe(exit_code)}). "
                f"Retrying in {delay:.1f}s..."
            )
            self._pause(delay)
            task = task.next_attempt()

    def _pause(self, delay: float) -> None:
        """Suspend the calling worker thread between attempts."""
        if self._cancel_event is None:
            self._sleep(delay)
            return
        if self._cancel_event.wait(delay):
            raise SyncCancelledError("Cancelled while waiting to retry")
