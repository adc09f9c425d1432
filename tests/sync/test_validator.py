"""Tests for DryRunValidator."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from mirrorsync.core.config import SyncPlan
from mirrorsync.core.errors import ValidationFailure
from mirrorsync.core.types import Verdict
from mirrorsync.sync.runner import SIMULATE_FLAG
from mirrorsync.sync.validator import DryRunValidator


class TestDryRunValidator:
    """Tests for DryRunValidator.validate."""

    def test_all_pass(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        runner = scripted_runner(dry_codes={"d1": 0, "d2": 3, "d3": 0})
        plan = make_plan(["d1", "d2", "d3"])

        outcome = DryRunValidator(runner).validate(plan)

        assert outcome.passed is True
        assert [r.destination for r in outcome.results] == list(plan.destinations)
        assert [r.verdict for r in outcome.results] == [
            Verdict.SUCCESS,
            Verdict.SUCCESS_WITH_WARNINGS,
            Verdict.SUCCESS,
        ]
        assert outcome.failed is None

    def test_stops_at_first_failure(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        """d2 fails, so d3 is never invoked."""
        runner = scripted_runner(dry_codes={"d1": 0, "d2": 8, "d3": 0})

        outcome = DryRunValidator(runner).validate(make_plan(["d1", "d2", "d3"]))

        assert outcome.passed is False
        assert runner.destinations_called() == [Path("d1"), Path("d2")]
        assert len(outcome.results) == 2
        assert outcome.failed is not None
        assert outcome.failed.destination == Path("d2")
        assert outcome.failed.exit_code == 8

    def test_runs_sequentially_in_plan_order(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        runner = scripted_runner(delay=0.01)
        plan = make_plan(["c", "a", "b"], max_parallel_jobs=3)

        DryRunValidator(runner).validate(plan)

        assert runner.destinations_called() == [Path("c"), Path("a"), Path("b")]
        assert runner.peak_in_flight == 1

    def test_every_call_simulates(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        runner = scripted_runner()
        DryRunValidator(runner).validate(make_plan(["d1", "d2"]))
        assert all(arguments[-1] == SIMULATE_FLAG for _, arguments in runner.calls)

    def test_no_retries(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        runner = scripted_runner(dry_codes={"d1": [16, 0]})
        outcome = DryRunValidator(runner).validate(make_plan(["d1"]))
        assert outcome.passed is False
        assert len(runner.calls) == 1
        assert outcome.results[0].attempts == 1

    def test_logs_to_validator_logger(
        self,
        make_plan: Callable[..., SyncPlan],
        scripted_runner: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        runner = scripted_runner(dry_codes={"d2": 8})
        with caplog.at_level("INFO", logger="mirrorsync"):
            DryRunValidator(runner).validate(make_plan(["d1", "d2", "d3"]))
        names = {record.name for record in caplog.records}
        assert names == {"mirrorsync.sync.validator"}
        assert "1 destination(s) not tested" in caplog.text


class TestRequirePass:
    """Tests for DryRunValidator.require_pass."""

    def test_raises_validation_failure(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        runner = scripted_runner(dry_codes={"d1": 16})
        with pytest.raises(ValidationFailure) as exc_info:
            DryRunValidator(runner).require_pass(make_plan(["d1", "d2"]))
        assert len(exc_info.value.results) == 1
        assert "d1" in str(exc_info.value)

    def test_returns_outcome_on_pass(
        self, make_plan: Callable[..., SyncPlan], scripted_runner: Any
    ) -> None:
        outcome = DryRunValidator(scripted_runner()).require_pass(make_plan(["d1"]))
        assert outcome.passed is True
