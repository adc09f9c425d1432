"""Tests for SyncOrchestrator end-to-end scenarios."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from mirrorsync.core.config import RetryPolicy, SyncPlan
from mirrorsync.core.types import OrchestratorState, Verdict
from mirrorsync.notifications import Notification, NotificationType
from mirrorsync.sync.orchestrator import SyncOrchestrator

NO_WAIT = RetryPolicy(max_retries=3, initial_delay=0.0)


class RecordingNotifier:
    """Notifier that records what it was asked to deliver."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    def notify(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return True


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


class TestScenarios:
    """End-to-end runs against a scripted mirroring tool."""

    def test_scenario_a_all_succeed(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        notifier: RecordingNotifier,
    ) -> None:
        runner = scripted_runner(codes={"D1": 0, "D2": 0}, dry_codes={"D1": 0, "D2": 0})
        orchestrator = SyncOrchestrator(NO_WAIT, notifier=notifier, runner=runner)

        report = orchestrator.run(make_plan(["D1", "D2"]))

        assert report.state == OrchestratorState.COMPLETED
        assert orchestrator.state == OrchestratorState.COMPLETED
        assert [r.verdict for r in report.results] == [Verdict.SUCCESS, Verdict.SUCCESS]
        assert [r.attempts for r in report.results] == [1, 1]
        assert report.fully_successful is True
        assert report.exit_code == 0
        assert len(report.validation_results) == 2
        assert notifier.sent[-1].type == NotificationType.INFO

    def test_scenario_b_dry_run_failure(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        notifier: RecordingNotifier,
    ) -> None:
        runner = scripted_runner(dry_codes={"D1": 16, "D2": 0})
        orchestrator = SyncOrchestrator(NO_WAIT, notifier=notifier, runner=runner)

        report = orchestrator.run(make_plan(["D1", "D2"]))

        assert report.state == OrchestratorState.VALIDATION_FAILED
        assert report.exit_code == 1
        assert report.results == []
        assert runner.destinations_called() == [Path("D1")]
        assert Path("D2") not in runner.destinations_called()
        assert report.error is not None
        assert "D1" in report.error
        assert len(notifier.sent) == 1
        assert notifier.sent[0].type == NotificationType.ERROR
        assert "Dry Run Failed" in notifier.sent[0].title

    def test_scenario_c_retry_then_warning(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        notifier: RecordingNotifier,
    ) -> None:
        runner = scripted_runner(codes={"D1": [8, 8, 1], "D2": 0})
        orchestrator = SyncOrchestrator(NO_WAIT, notifier=notifier, runner=runner)

        report = orchestrator.run(make_plan(["D1", "D2"]))

        by_dest = {r.destination: r for r in report.results}
        assert by_dest[Path("D1")].verdict == Verdict.SUCCESS_WITH_WARNINGS
        assert by_dest[Path("D1")].attempts == 3
        assert by_dest[Path("D2")].verdict == Verdict.SUCCESS
        assert by_dest[Path("D2")].attempts == 1
        assert report.state == OrchestratorState.COMPLETED
        assert report.exit_code == 0

    def test_partial_failure_still_completes(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        notifier: RecordingNotifier,
    ) -> None:
        runner = scripted_runner(codes={"D1": 8, "D2": 0})
        orchestrator = SyncOrchestrator(
            RetryPolicy(max_retries=1, initial_delay=0.0), notifier=notifier, runner=runner
        )

        report = orchestrator.run(make_plan(["D1", "D2"]))

        assert report.state == OrchestratorState.COMPLETED
        assert report.fully_successful is False
        assert report.failed_destinations == [Path("D1")]
        assert report.exit_code == 0
        assert len(report.results) == 2
        assert notifier.sent[-1].type == NotificationType.WARNING
        assert "D1" in notifier.sent[-1].message


class TestStateMachine:
    """Tests for transitions and error handling."""

    def test_transition_sequence(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        states: list[OrchestratorState] = []
        orchestrator = SyncOrchestrator(
            NO_WAIT, runner=scripted_runner(), on_state_change=states.append
        )

        orchestrator.run(make_plan(["D1"]))

        assert states == [
            OrchestratorState.VALIDATING,
            OrchestratorState.VALIDATED,
            OrchestratorState.EXECUTING,
            OrchestratorState.COMPLETED,
        ]

    def test_runs_only_once(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        orchestrator = SyncOrchestrator(NO_WAIT, runner=scripted_runner())
        orchestrator.run(make_plan(["D1"]))
        with pytest.raises(RuntimeError, match="once"):
            orchestrator.run(make_plan(["D1"]))

    def test_unexpected_error_in_validation(
        self, make_plan: Callable[..., SyncPlan], notifier: RecordingNotifier
    ) -> None:
        """A missing tool binary ends the run in FAILED without raising."""
        runner = MagicMock()
        runner.run.side_effect = FileNotFoundError("robocopy not found")
        orchestrator = SyncOrchestrator(NO_WAIT, notifier=notifier, runner=runner)

        report = orchestrator.run(make_plan(["D1", "D2"]))

        assert report.state == OrchestratorState.FAILED
        assert report.exit_code == 1
        assert report.error is not None
        assert "robocopy not found" in report.error
        assert notifier.sent[-1].type == NotificationType.ERROR

    def test_unexpected_error_in_real_run_keeps_results(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        notifier: RecordingNotifier,
    ) -> None:
        runner = scripted_runner()
        original_run = runner.run

        def run(executable: str, arguments: list[str]) -> int:
            if "/L" not in arguments and arguments[1] == str(Path("D2")):
                raise PermissionError("access denied")
            return original_run(executable, arguments)

        runner.run = run
        orchestrator = SyncOrchestrator(NO_WAIT, notifier=notifier, runner=runner)

        report = orchestrator.run(make_plan(["D1", "D2"]))

        assert report.state == OrchestratorState.FAILED
        assert [r.destination for r in report.results] == [Path("D1")]
        assert report.error is not None
        assert "access denied" in report.error

    def test_cancelled_run_fails(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        event = threading.Event()
        runner = scripted_runner(codes={"D1": 8})
        orchestrator = SyncOrchestrator(
            RetryPolicy(max_retries=3, initial_delay=60.0),
            runner=runner,
            cancel_event=event,
            on_state_change=lambda s: event.set() if s == OrchestratorState.EXECUTING else None,
        )

        report = orchestrator.run(make_plan(["D1"]))

        assert report.state == OrchestratorState.FAILED
        assert report.error is not None
        assert report.error.startswith("Sync cancelled")

    def test_notifier_errors_are_swallowed(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        broken = MagicMock()
        broken.notify.side_effect = RuntimeError("no display")
        orchestrator = SyncOrchestrator(NO_WAIT, notifier=broken, runner=scripted_runner())

        report = orchestrator.run(make_plan(["D1"]))

        assert report.state == OrchestratorState.COMPLETED
        broken.notify.assert_called_once()

    def test_state_callback_errors_are_swallowed(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A raising observer neither escapes run() nor changes the outcome."""
        seen: list[OrchestratorState] = []

        def on_state_change(state: OrchestratorState) -> None:
            seen.append(state)
            raise RuntimeError("callback boom")

        runner = scripted_runner()
        orchestrator = SyncOrchestrator(
            NO_WAIT, runner=runner, on_state_change=on_state_change
        )

        with caplog.at_level("ERROR", logger="mirrorsync.sync.orchestrator"):
            report = orchestrator.run(make_plan(["D1", "D2"]))

        assert report.state == OrchestratorState.COMPLETED
        assert len(report.results) == 2
        assert seen[0] == OrchestratorState.VALIDATING
        assert seen[-1] == OrchestratorState.COMPLETED
        assert "callback boom" in caplog.text

    def test_state_callback_error_on_failure_path(
        self, make_plan: Callable[..., SyncPlan], notifier: RecordingNotifier
    ) -> None:
        def on_state_change(state: OrchestratorState) -> None:
            if state == OrchestratorState.FAILED:
                raise RuntimeError("callback boom")

        runner = MagicMock()
        runner.run.side_effect = FileNotFoundError("robocopy not found")
        orchestrator = SyncOrchestrator(
            NO_WAIT, notifier=notifier, runner=runner, on_state_change=on_state_change
        )

        report = orchestrator.run(make_plan(["D1"]))

        assert report.state == OrchestratorState.FAILED
        assert notifier.sent[-1].type == NotificationType.ERROR

    def test_default_runner_uses_cancel_event(self) -> None:
        event = threading.Event()
        with patch("mirrorsync.sync.orchestrator.ProcessRunner") as mock_runner:
            SyncOrchestrator(NO_WAIT, cancel_event=event)
        mock_runner.assert_called_once_with(cancel_event=event)
