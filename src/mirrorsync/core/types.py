"""Shared types for mirrorsync.

This module defines enums used across the sync engine and the CLI.
"""

from __future__ import annotations

from enum import Enum


class Verdict(str, Enum):
    """Classified meaning of a mirroring tool exit code."""

    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"
    FAILURE = "failure"


class OrchestratorState(str, Enum):
    """State of a SyncOrchestrator run.

    VALIDATION_FAILED, COMPLETED and FAILED are terminal.
    """

    IDLE = "idle"
    VALIDATING = "validating"
    VALIDATION_FAILED = "validation_failed"
    VALIDATED = "validated"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            OrchestratorState.VALIDATION_FAILED,
            OrchestratorState.COMPLETED,
            OrchestratorState.FAILED,
        )
