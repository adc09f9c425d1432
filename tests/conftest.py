"""Shared pytest fixtures for mirrorsync tests."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest

from mirrorsync.core.config import SyncPlan
from mirrorsync.sync.runner import SIMULATE_FLAG


class ScriptedRunner:
    """Stand-in for ProcessRunner returning scripted exit codes.

    Codes are looked up by destination (the second argument). A list of
    codes is consumed one per call; its last value repeats. Dry-run calls
    (arguments containing /L) use dry_codes, real calls use codes.
    Unlisted destinations return 0.
    """

    def __init__(
        self,
        codes: dict[str, int | list[int]] | None = None,
        dry_codes: dict[str, int | list[int]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._codes = self._normalize(codes or {})
        self._dry_codes = self._normalize(dry_codes or {})
        self._delay = delay
        self._lock = threading.Lock()
        self.calls: list[tuple[str, list[str]]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    @staticmethod
    def _normalize(codes: dict[str, int | list[int]]) -> dict[Path, list[int]]:
        return {
            Path(dest): list(value) if isinstance(value, list) else [value]
            for dest, value in codes.items()
        }

    def run(self, executable: str, arguments: Sequence[str]) -> int:
        destination = Path(arguments[1])
        simulate = SIMULATE_FLAG in arguments
        table = self._dry_codes if simulate else self._codes
        with self._lock:
            self.calls.append((executable, list(arguments)))
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            sequence = table.get(destination, [0])
            code = sequence.pop(0) if len(sequence) > 1 else sequence[0]
        try:
            if self._delay:
                time.sleep(self._delay)
            return code
        finally:
            with self._lock:
                self.in_flight -= 1

    def destinations_called(self, simulate: bool | None = None) -> list[Path]:
        """Get destinations in call order, optionally filtered by phase."""
        return [
            Path(arguments[1])
            for _, arguments in self.calls
            if simulate is None or (SIMULATE_FLAG in arguments) == simulate
        ]


@pytest.fixture(autouse=True)
def reset_mirrorsync_logger() -> Iterator[None]:
    """Undo handlers installed by setup_logging so caplog keeps working."""
    yield
    logger = logging.getLogger("mirrorsync")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Create a source directory with a file in it."""
    source = tmp_path / "source dir"
    source.mkdir()
    (source / "file.txt").write_text("content")
    return source


@pytest.fixture
def make_plan(source_dir: Path) -> Callable[..., SyncPlan]:
    """Factory for plans rooted at source_dir."""

    def _make_plan(
        destinations: Sequence[str] = ("D1", "D2"),
        max_parallel_jobs: int = 2,
        exclusions: Sequence[str] = (),
    ) -> SyncPlan:
        return SyncPlan(
            source_path=source_dir,
            destinations=tuple(Path(d) for d in destinations),
            exclusions=tuple(exclusions),
            max_parallel_jobs=max_parallel_jobs,
        )

    return _make_plan


@pytest.fixture
def scripted_runner() -> type[ScriptedRunner]:
    """Give tests access to the ScriptedRunner class."""
    return ScriptedRunner
