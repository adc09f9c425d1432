"""Top-level state machine for one mirroring pass.

    IDLE -> VALIDATING -> VALIDATION_FAILED
                       -> VALIDATED -> EXECUTING -> COMPLETED
    any phase -> FAILED (unexpected error or cancellation)

The real run starts only after every destination passed the dry run, and
uses the same plan (same options) that was validated.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from mirrorsync.core.errors import DispatchError, SyncCancelledError
from mirrorsync.core.types import OrchestratorState
from mirrorsync.notifications import (
    NullNotifier,
    notify_partial_failure,
    notify_run_error,
    notify_sync_complete,
    notify_validation_failed,
)
from mirrorsync.sync.classifier import describe
from mirrorsync.sync.dispatcher import ParallelDispatcher
from mirrorsync.sync.retry import RetryExecutor
from mirrorsync.sync.runner import ProcessRunner
from mirrorsync.sync.types import SyncReport
from mirrorsync.sync.validator import DryRunValidator

if TYPE_CHECKING:
    from mirrorsync.core.config import RetryPolicy, SyncPlan
    from mirrorsync.notifications import Notifier
    from mirrorsync.sync.types import ExecutionResult, StateCallback

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs the dry-run gate, then the parallel real run, and reports.

    Never raises for run failures: every outcome, including unexpected
    errors, is returned as a SyncReport.

    Usage:
        orchestrator = SyncOrchestrator(policy, notifier=default_notifier())
        report = orchestrator.run(plan)
        sys.exit(report.exit_code)
    """

    def __init__(
        self,
        policy: RetryPolicy,
        notifier: Notifier | None = None,
        runner: ProcessRunner | None = None,
        cancel_event: threading.Event | None = None,
        on_state_change: StateCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            policy: Retry policy for the real run.
            notifier: Where to report the outcome (default: no notifications).
            runner: Process runner shared by both phases.
            cancel_event: Stop request shared with runner and retries.
            on_state_change: Called with each new state.
        """
        self._policy = policy
        self._notifier = notifier or NullNotifier()
        self._cancel_event = cancel_event
        self._runner = runner or ProcessRunner(cancel_event=cancel_event)
        self._on_state_change = on_state_change

        self._state = OrchestratorState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> OrchestratorState:
        """Get current orchestrator state."""
        return self._state

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug(f"Orchestrator: {self._state.value} -> {state.value}")
        self._state = state
        if self._on_state_change:
            try:
                self._on_state_change(state)
            except Exception:
                logger.exception(f"State change callback failed for {state.value}")

    def run(self, plan: SyncPlan) -> SyncReport:
        """Validate then mirror the plan.

        Args:
            plan: The sync plan.

        Returns:
            Report with the terminal state and all per-destination results.

        Raises:
            RuntimeError: If this orchestrator was already used.
        """
        with self._lock:
            if self._state != OrchestratorState.IDLE:
                raise RuntimeError("SyncOrchestrator can only run once")
            self._transition(OrchestratorState.VALIDATING)

        report = SyncReport(state=self._state)
        try:
            self._run_phases(plan, report)
        except Exception as e:
            self._fail(report, e)
        report.state = self._state
        return report

    def _run_phases(self, plan: SyncPlan, report: SyncReport) -> None:
        logger.info(
            f"Starting sync of {plan.source_path} to "
            f"{len(plan.destinations)} destination(s)"
        )

        outcome = DryRunValidator(self._runner).validate(plan)
        report.validation_results = outcome.results

        if not outcome.passed:
            self._transition(OrchestratorState.VALIDATION_FAILED)
            failed = outcome.failed
            if failed is not None:
                report.error = f"Dry run failed for {failed.destination}: {failed.error_detail}"
            else:
                report.error = "Dry run did not reach every destination"
            logger.error(f"{report.error}. Real copy not started.")
            notify_validation_failed(self._notifier, report.error)
            return

        self._transition(OrchestratorState.VALIDATED)
        self._transition(OrchestratorState.EXECUTING)

        executor = RetryExecutor(self._runner, cancel_event=self._cancel_event)
        dispatcher = ParallelDispatcher(executor, on_result=self._log_result)
        try:
            report.results = dispatcher.dispatch(plan, self._policy)
        except DispatchError as e:
            report.results = e.results
            raise

        self._transition(OrchestratorState.COMPLETED)
        failed_destinations = report.failed_destinations
        if failed_destinations:
            names = ", ".join(str(d) for d in failed_destinations)
            logger.error(
                f"Sync completed with {len(failed_destinations)} failed "
                f"destination(s): {names}"
            )
            notify_partial_failure(self._notifier, failed_destinations, len(report.results))
        else:
            logger.info(f"Sync completed successfully for {len(report.results)} destination(s)")
            notify_sync_complete(self._notifier, len(report.results))

    def _fail(self, report: SyncReport, error: Exception) -> None:
        """Move to FAILED after an error outside the modeled control flow."""
        cause = error.__cause__ if isinstance(error, DispatchError) else error
        if isinstance(cause, SyncCancelledError):
            report.error = f"Sync cancelled: {cause}"
            logger.warning(report.error)
        else:
            report.error = f"Unexpected error during {self._state.value}: {error}"
            logger.exception(report.error)
        self._transition(OrchestratorState.FAILED)
        notify_run_error(self._notifier, report.error)

    @staticmethod
    def _log_result(result: ExecutionResult) -> None:
        if result.ok:
            logger.info(
                f"{result.destination}: {result.verdict.value} after "
                f"{result.attempts} attempt(s) in {result.duration:.1f}s "
                f"({describe(result.exit_code)})"
            )
        else:
            logger.error(f"{result.destination}: {result.error_detail}")
