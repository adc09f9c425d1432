"""Sync orchestration engine.

Architecture:
    SyncOrchestrator → DryRunValidator → ParallelDispatcher → RetryExecutor
                                     ↘                     ↙
                                       ProcessRunner + classify

Components:
- **classify**: Maps a mirroring tool exit code to a Verdict
- **ProcessRunner**: Spawns the tool with an argument vector
- **RetryExecutor**: Retries failing copies with exponential backoff
- **DryRunValidator**: Sequential, fail-fast list-only pass
- **ParallelDispatcher**: Bounded worker pool for the real run
- **SyncOrchestrator**: State machine tying the phases together
"""

from mirrorsync.sync.classifier import FAILURE_THRESHOLD, classify, describe
from mirrorsync.sync.dispatcher import DispatcherState, ParallelDispatcher
from mirrorsync.sync.orchestrator import SyncOrchestrator
from mirrorsync.sync.retry import RetryExecutor
from mirrorsync.sync.runner import (
    EXCLUDE_DIR_FLAG,
    SIMULATE_FLAG,
    ProcessRunner,
    build_arguments,
)
from mirrorsync.sync.types import (
    DestinationTask,
    ExecutionResult,
    StateCallback,
    SyncReport,
    ValidationOutcome,
)
from mirrorsync.sync.validator import DryRunValidator

__all__ = [
    # Classifier
    "FAILURE_THRESHOLD",
    "classify",
    "describe",
    # Runner
    "EXCLUDE_DIR_FLAG",
    "SIMULATE_FLAG",
    "ProcessRunner",
    "build_arguments",
    # Phases
    "DispatcherState",
    "DryRunValidator",
    "ParallelDispatcher",
    "RetryExecutor",
    "SyncOrchestrator",
    # Types
    "DestinationTask",
    "ExecutionResult",
    "StateCallback",
    "SyncReport",
    "ValidationOutcome",
]
