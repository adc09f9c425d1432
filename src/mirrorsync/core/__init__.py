"""Core module - Configuration, shared types and errors."""

from mirrorsync.core.config import (
    DEFAULT_OPTIONS,
    DEFAULT_TOOL,
    ConfigDocument,
    LoadedConfig,
    LogSettings,
    RetryPolicy,
    SyncPlan,
    load_plan,
)
from mirrorsync.core.errors import (
    ConfigurationError,
    DispatchError,
    MirrorSyncError,
    SyncCancelledError,
    ValidationFailure,
)
from mirrorsync.core.types import OrchestratorState, Verdict

__all__ = [
    # Config
    "DEFAULT_OPTIONS",
    "DEFAULT_TOOL",
    "ConfigDocument",
    "LoadedConfig",
    "LogSettings",
    "RetryPolicy",
    "SyncPlan",
    "load_plan",
    # Errors
    "ConfigurationError",
    "DispatchError",
    "MirrorSyncError",
    "SyncCancelledError",
    "ValidationFailure",
    # Types
    "OrchestratorState",
    "Verdict",
]
