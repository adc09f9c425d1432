"""Logging configuration for mirrorsync.

Three log streams are written under the log directory:

    run.log    everything the run does (INFO and above)
    error.log  errors only
    test.log   the dry-run validation phase

Each stream rotates when it grows past a size limit or gets older than an
age limit, whichever comes first.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(message)s"

ROOT_LOGGER = "mirrorsync"
VALIDATION_LOGGER = "mirrorsync.sync.validator"

RUN_STREAM = "run"
ERROR_STREAM = "error"
TEST_STREAM = "test"
STREAMS = (RUN_STREAM, ERROR_STREAM, TEST_STREAM)

# Default logging.Formatter asctime layout, e.g. "2026-10-16 08:30:00,123"
ASCTIME_FORMAT = "%Y-%m-%d %H:%M:%S,%f"
ASCTIME_LENGTH = 23


def _file_started_at(path: Path) -> float:
    """Get when a log file was started, from the timestamp of its first line."""
    if not path.exists():
        return time.time()
    try:
        with path.open(encoding="utf-8", errors="replace") as stream:
            first_line = stream.readline()
        started = datetime.strptime(first_line[:ASCTIME_LENGTH], ASCTIME_FORMAT)
    except (OSError, ValueError):
        return path.stat().st_mtime
    return started.timestamp()


class SizeAndAgeRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that also rolls over files older than max_age.

    Age is measured from the timestamp of the file's first record, so a log
    appended to on every run still rotates once it was started long enough
    ago. Files whose first line carries no timestamp fall back to their
    modification time.
    """

    def __init__(
        self,
        filename: str | os.PathLike[str],
        max_bytes: int = 0,
        backup_count: int = 0,
        max_age: float = 0.0,
        encoding: str | None = "utf-8",
    ) -> None:
        """Initialize the handler.

        Args:
            filename: Log file path.
            max_bytes: Roll over past this size (0 = no size limit).
            backup_count: Number of rotated files kept.
            max_age: Roll over after this many seconds (0 = no age limit).
            encoding: File encoding.
        """
        self._started_at = _file_started_at(Path(filename))
        self.max_age = max_age
        super().__init__(
            filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
            delay=True,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:  # noqa: N802
        if super().shouldRollover(record):
            return True
        return bool(self.max_age) and time.time() - self._started_at >= self.max_age

    def doRollover(self) -> None:  # noqa: N802
        super().doRollover()
        self._started_at = time.time()


class LoggerPrefixFilter(logging.Filter):
    """Keeps only records from one logger subtree."""

    def __init__(self, prefix: str) -> None:
        super().__init__()
        self._prefix = prefix

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name == self._prefix or record.name.startswith(self._prefix + ".")


def stream_path(log_dir: Path, stream: str) -> Path:
    """Get the file path of a log stream."""
    return log_dir / f"{stream}.log"


def setup_logging(
    log_dir: Path | None = None,
    max_bytes: int = 0,
    backup_count: int = 0,
    max_age_days: float = 0.0,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the mirrorsync logger.

    Replaces handlers installed by a previous call, so it can be called
    once per run (or per test).

    Args:
        log_dir: Directory of the log streams (None = console only).
        max_bytes: Size limit per log file.
        backup_count: Rotated files kept per stream.
        max_age_days: Age limit per log file, in days.
        verbose: Show INFO messages on the console (default: WARNING+).

    Returns:
        The configured mirrorsync logger.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    root_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    root_logger.addHandler(console_handler)

    if log_dir is None:
        return root_logger

    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    max_age = max_age_days * 24 * 3600

    def make_handler(stream: str, level: int) -> SizeAndAgeRotatingFileHandler:
        handler = SizeAndAgeRotatingFileHandler(
            stream_path(log_dir, stream),
            max_bytes=max_bytes,
            backup_count=backup_count,
            max_age=max_age,
        )
        handler.setFormatter(formatter)
        handler.setLevel(level)
        return handler

    root_logger.addHandler(make_handler(RUN_STREAM, logging.INFO))
    root_logger.addHandler(make_handler(ERROR_STREAM, logging.ERROR))

    test_handler = make_handler(TEST_STREAM, logging.INFO)
    test_handler.addFilter(LoggerPrefixFilter(VALIDATION_LOGGER))
    root_logger.addHandler(test_handler)

    return root_logger
