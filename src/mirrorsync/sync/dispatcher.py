"""Bounded parallel dispatch of real-run copies.

This module provides:
- DispatcherState: Lifecycle of a dispatcher
- ParallelDispatcher: Runs a RetryExecutor per destination on a fixed
  number of worker threads
"""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum, auto
from typing import TYPE_CHECKING

from mirrorsync.core.errors import DispatchError, SyncCancelledError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from mirrorsync.core.config import RetryPolicy, SyncPlan
    from mirrorsync.sync.retry import RetryExecutor
    from mirrorsync.sync.types import ExecutionResult

logger = logging.getLogger(__name__)


class DispatcherState(Enum):
    """State of the dispatcher."""

    IDLE = auto()
    RUNNING = auto()
    FINISHED = auto()


# (destination, result, error): exactly one of result/error is set
_Outcome = tuple["Path", "ExecutionResult | None", "Exception | None"]


class ParallelDispatcher:
    """Pool of worker threads mirroring destinations concurrently.

    At most plan.max_parallel_jobs workers exist, so the ceiling holds at
    every instant. Workers pull destinations from a shared queue and push
    their outcome to a result queue drained by the dispatching thread only.

    A dispatcher is single use: dispatch() may be called once.

    Usage:
        dispatcher = ParallelDispatcher(RetryExecutor(ProcessRunner()))
        results = dispatcher.dispatch(plan, policy)
    """

    def __init__(
        self,
        executor: RetryExecutor,
        on_result: Callable[[ExecutionResult], None] | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            executor: Executor run once per destination.
            on_result: Optional callback invoked (on the dispatching thread)
                as each destination finishes.
        """
        self._executor = executor
        self._on_result = on_result

        self._state = DispatcherState.IDLE
        self._lock = threading.Lock()

        # In-flight tracking
        self._active: set[Path] = set()
        self._peak_active = 0

    @property
    def state(self) -> DispatcherState:
        """Get current dispatcher state."""
        return self._state

    @property
    def active_count(self) -> int:
        """Get number of destinations currently being mirrored."""
        with self._lock:
            return len(self._active)

    @property
    def peak_active(self) -> int:
        """Get the highest number of simultaneously running destinations."""
        with self._lock:
            return self._peak_active

    def dispatch(self, plan: SyncPlan, policy: RetryPolicy) -> list[ExecutionResult]:
        """Mirror every destination of the plan.

        Args:
            plan: The sync plan (already validated).
            policy: Retry policy for each destination.

        Returns:
            One result per destination, in plan order.

        Raises:
            RuntimeError: If this dispatcher was already used.
            DispatchError: If an executor raised instead of returning a result.
        """
        with self._lock:
            if self._state != DispatcherState.IDLE:
                raise RuntimeError("ParallelDispatcher can only dispatch once")
            self._state = DispatcherState.RUNNING

        destinations = plan.destinations
        worker_count = min(plan.max_parallel_jobs, len(destinations))

        task_queue: queue.Queue[Path | None] = queue.Queue()
        result_queue: queue.Queue[_Outcome] = queue.Queue()

        for destination in destinations:
            task_queue.put(destination)
        # Poison pills - one per worker
        for _ in range(worker_count):
            task_queue.put(None)

        workers = []
        for i in range(worker_count):
            thread = threading.Thread(
                target=self._worker_loop,
                args=(task_queue, result_queue, plan, policy),
                name=f"Dispatcher-{i}",
                daemon=True,
            )
            thread.start()
            workers.append(thread)

        logger.info(
            f"Mirroring {len(destinations)} destination(s) with "
            f"{worker_count} parallel job(s)"
        )

        results: dict[Path, ExecutionResult] = {}
        errors: list[tuple[Path, Exception]] = []
        try:
            for _ in destinations:
                destination, result, error = result_queue.get()
                if result is not None:
                    results[destination] = result
                    self._report(result)
                elif error is not None:
                    errors.append((destination, error))
        finally:
            for worker in workers:
                worker.join()
            with self._lock:
                self._state = DispatcherState.FINISHED

        ordered = [results[d] for d in destinations if d in results]
        if errors:
            destination, error = errors[0]
            raise DispatchError(
                f"{len(errors)} destination(s) raised; first was {destination}: {error}",
                ordered,
            ) from error
        return ordered

    def _report(self, result: ExecutionResult) -> None:
        if not self._on_result:
            return
        try:
            self._on_result(result)
        except Exception:
            logger.exception(f"Result callback failed for {result.destination}")

    def _worker_loop(
        self,
        task_queue: queue.Queue[Path | None],
        result_queue: queue.Queue[_Outcome],
        plan: SyncPlan,
        policy: RetryPolicy,
    ) -> None:
        """Main loop for worker threads."""
        while True:
            destination = task_queue.get()
            if destination is None:
                # Poison pill - stop worker
                break

            with self._lock:
                self._active.add(destination)
                self._peak_active = max(self._peak_active, len(self._active))

            try:
                result = self._executor.execute(destination, plan, policy)
                result_queue.put((destination, result, None))
            except SyncCancelledError as e:
                logger.warning(f"{destination}: {e}")
                result_queue.put((destination, None, e))
            except Exception as e:
                logger.exception(f"Unexpected error while mirroring {destination}")
                result_queue.put((destination, None, e))
            finally:
                with self._lock:
                    self._active.discard(destination)
