"""Exception classes for mirrorsync.

Copy failures reported by the mirroring tool are never exceptions: they are
classified into verdicts and carried by ExecutionResult. Only faults outside
that control flow are raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mirrorsync.sync.types import ExecutionResult


class MirrorSyncError(Exception):
    """Base exception for mirrorsync errors."""


class ConfigurationError(MirrorSyncError):
    """Configuration file is missing, malformed, or points to a missing source."""


class ValidationFailure(MirrorSyncError):
    """Dry run detected a failing destination.

    Attributes:
        results: Validation results gathered before the gate closed.
    """

    def __init__(self, message: str, results: list[ExecutionResult]) -> None:
        super().__init__(message)
        self.results = results


class SyncCancelledError(MirrorSyncError):
    """The run was stopped by an external cancellation request."""


class DispatchError(MirrorSyncError):
    """A destination worker raised instead of producing a result.

    Attributes:
        results: Results of the destinations that did complete.
    """

    def __init__(self, message: str, results: list[ExecutionResult]) -> None:
        super().__init__(message)
        self.results = results
