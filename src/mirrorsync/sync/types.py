"""Shared types and dataclasses for sync operations.

This module provides:
- DestinationTask: One attempt against one destination
- ExecutionResult: Outcome for a destination in one phase
- ValidationOutcome: Result of the dry-run gate
- SyncReport: Final report of an orchestrator run
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from mirrorsync.core.types import OrchestratorState, Verdict


@dataclass(frozen=True)
class DestinationTask:
    """A single attempt at mirroring into one destination."""

    destination: Path
    attempt: int = 1

    def __post_init__(self) -> None:
        if self.attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {self.attempt}")

    def next_attempt(self) -> DestinationTask:
        return DestinationTask(destination=self.destination, attempt=self.attempt + 1)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one destination in one phase (validation or real run).

    Attributes:
        destination: Destination root.
        verdict: Classified exit code of the final attempt.
        exit_code: Raw exit code of the final attempt.
        attempts: Number of tool invocations made.
        error_detail: Human readable reason for a Failure verdict.
        duration: Wall time in seconds, backoff pauses included.
    """

    destination: Path
    verdict: Verdict
    exit_code: int
    attempts: int = 1
    error_detail: str | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Check if the verdict is Success or SuccessWithWarnings."""
        return self.verdict != Verdict.FAILURE


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of the dry-run gate.

    Attributes:
        passed: True only if every destination was tested and none failed.
        results: Results in test order; stops at the first failure.
    """

    passed: bool
    results: list[ExecutionResult] = field(default_factory=list)

    @property
    def failed(self) -> ExecutionResult | None:
        """Get the result that closed the gate, if any."""
        for result in self.results:
            if not result.ok:
                return result
        return None


@dataclass
class SyncReport:
    """Final report of a SyncOrchestrator run."""

    state: OrchestratorState
    validation_results: list[ExecutionResult] = field(default_factory=list)
    results: list[ExecutionResult] = field(default_factory=list)
    error: str | None = None

    @property
    def fully_successful(self) -> bool:
        """Check if the real run completed with no failing destination."""
        return self.state == OrchestratorState.COMPLETED and all(
            r.ok for r in self.results
        )

    @property
    def failed_destinations(self) -> list[Path]:
        return [r.destination for r in self.results if not r.ok]

    @property
    def exit_code(self) -> int:
        """Process exit code for this run.

        A completed run exits 0 even when some destinations failed; the
        failures are reported, not fatal.
        """
        return 0 if self.state == OrchestratorState.COMPLETED else 1


# Type alias for state transition callback
StateCallback = Callable[[OrchestratorState], None]
