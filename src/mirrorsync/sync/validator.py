"""Dry-run validation gate.

Every destination is tested once, in plan order, with the tool in list-only
mode. The first failing destination closes the gate; the rest are not run.
Records from this module feed the "test" log stream.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from mirrorsync.core.errors import ValidationFailure
from mirrorsync.core.types import Verdict
from mirrorsync.sync.classifier import classify, describe
from mirrorsync.sync.runner import build_arguments
from mirrorsync.sync.types import ExecutionResult, ValidationOutcome

if TYPE_CHECKING:
    from mirrorsync.core.config import SyncPlan
    from mirrorsync.sync.runner import ProcessRunner

logger = logging.getLogger(__name__)


class DryRunValidator:
    """Sequential, fail-fast simulation of a sync plan."""

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    def validate(self, plan: SyncPlan) -> ValidationOutcome:
        """Simulate the plan against each destination in order.

        Args:
            plan: The sync plan.

        Returns:
            ValidationOutcome with passed=True only if all destinations
            were tested and none failed.
        """
        total = len(plan.destinations)
        results: list[ExecutionResult] = []
        logger.info(f"Dry run: testing {total} destination(s) from {plan.source_path}")

        for index, destination in enumerate(plan.destinations, start=1):
            start_time = time.monotonic()
            exit_code = self._runner.run(
                plan.tool_path, build_arguments(plan, destination, simulate=True)
            )
            verdict = classify(exit_code)
            duration = time.monotonic() - start_time

            if verdict == Verdict.FAILURE:
                detail = f"Dry run failed with exit code {exit_code} ({describe(exit_code)})"
                results.append(ExecutionResult(
                    destination=destination,
                    verdict=verdict,
                    exit_code=exit_code,
                    error_detail=detail,
                    duration=duration,
                ))
                logger.error(f"[{index}/{total}] {destination}: {detail}")
                skipped = total - index
                if skipped:
                    logger.info(f"Dry run aborted, {skipped} destination(s) not tested")
                return ValidationOutcome(passed=False, results=results)

            results.append(ExecutionResult(
                destination=destination,
                verdict=verdict,
                exit_code=exit_code,
                duration=duration,
            ))
            logger.info(
                f"[{index}/{total}] {destination}: OK, exit code {exit_code} "
                f"({describe(exit_code)})"
            )

        logger.info("Dry run passed for all destinations")
        return ValidationOutcome(passed=True, results=results)

    def require_pass(self, plan: SyncPlan) -> ValidationOutcome:
        """Validate and raise if the gate closes.

        Raises:
            ValidationFailure: If any destination fails the dry run.
        """
        outcome = self.validate(plan)
        if not outcome.passed:
            failed = outcome.failed
            where = failed.destination if failed is not None else "unknown destination"
            raise ValidationFailure(f"Dry run failed for {where}", outcome.results)
        return outcome
