"""Configuration for mirrorsync.

This module provides:
- SyncPlan: Immutable description of one mirroring pass
- RetryPolicy: Backoff settings for the real-run phase
- LogSettings: Where and how the log streams rotate
- load_plan: Read and validate a JSON configuration file

The JSON document keeps the field names operators already use
(SourceDir, DestDirs, Exclusions, Options, MaxParallelJobs).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mirrorsync.core.errors import ConfigurationError

DEFAULT_TOOL = "robocopy"
DEFAULT_OPTIONS = "/MIR /Z /R:5 /W:10 /MT:32"
DEFAULT_MAX_PARALLEL_JOBS = 2

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 5.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_LOG_MAX_AGE_DAYS = 30.0


@dataclass(frozen=True)
class SyncPlan:
    """What to mirror, where to, and how.

    Attributes:
        source_path: Root of the tree to mirror.
        destinations: Destination roots, in configuration order.
        exclusions: Directory names excluded from mirroring (unique).
        tool_options: Flags passed to the mirroring tool, one per element.
        max_parallel_jobs: Ceiling on concurrently running destinations.
        tool_path: Executable of the mirroring tool.
    """

    source_path: Path
    destinations: tuple[Path, ...]
    exclusions: tuple[str, ...] = ()
    tool_options: tuple[str, ...] = tuple(DEFAULT_OPTIONS.split())
    max_parallel_jobs: int = DEFAULT_MAX_PARALLEL_JOBS
    tool_path: str = DEFAULT_TOOL

    def __post_init__(self) -> None:
        """Normalize collections and check invariants."""
        destinations = tuple(Path(d) for d in self.destinations)
        if not destinations:
            raise ValueError("SyncPlan needs at least one destination")
        if len(set(destinations)) != len(destinations):
            raise ValueError("SyncPlan destinations must be unique")
        if self.max_parallel_jobs < 1:
            raise ValueError(
                f"max_parallel_jobs must be positive, got {self.max_parallel_jobs}"
            )
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "source_path", Path(self.source_path))
        object.__setattr__(self, "destinations", destinations)
        object.__setattr__(self, "exclusions", tuple(dict.fromkeys(self.exclusions)))
        object.__setattr__(self, "tool_options", tuple(self.tool_options))


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for a single destination in the real-run phase.

    Attributes:
        max_retries: Retries after the first attempt (0 = single attempt).
        initial_delay: Seconds to wait before the first retry.
        backoff_multiplier: Factor applied to the delay after each retry.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: float = DEFAULT_INITIAL_DELAY
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.backoff_multiplier <= 1:
            raise ValueError(
                f"backoff_multiplier must be > 1, got {self.backoff_multiplier}"
            )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Get the pause that follows a failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed.

        Returns:
            Delay in seconds.
        """
        return self.initial_delay * self.backoff_multiplier ** (attempt - 1)


@dataclass(frozen=True)
class LogSettings:
    """Location and rotation limits of the log streams."""

    log_dir: Path
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT
    max_age_days: float = DEFAULT_LOG_MAX_AGE_DAYS


@dataclass(frozen=True)
class LoadedConfig:
    """Everything read from one configuration file."""

    plan: SyncPlan
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    logging: LogSettings | None = None


class ConfigDocument(BaseModel):
    """Schema of the JSON configuration file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_dir: str = Field(alias="SourceDir", min_length=1)
    dest_dirs: list[str] = Field(alias="DestDirs", min_length=1)
    exclusions: list[str] = Field(alias="Exclusions")
    options: str = Field(default=DEFAULT_OPTIONS, alias="Options")
    max_parallel_jobs: int = Field(
        default=DEFAULT_MAX_PARALLEL_JOBS, alias="MaxParallelJobs", gt=0
    )
    tool_path: str = Field(default=DEFAULT_TOOL, alias="ToolPath", min_length=1)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, alias="MaxRetries", ge=0)
    retry_delay_seconds: float = Field(
        default=DEFAULT_INITIAL_DELAY, alias="RetryDelaySeconds", ge=0
    )
    backoff_multiplier: float = Field(
        default=DEFAULT_BACKOFF_MULTIPLIER, alias="BackoffMultiplier", gt=1
    )
    log_dir: str | None = Field(default=None, alias="LogDir")
    log_max_bytes: int = Field(default=DEFAULT_LOG_MAX_BYTES, alias="LogMaxBytes", ge=0)
    log_backup_count: int = Field(
        default=DEFAULT_LOG_BACKUP_COUNT, alias="LogBackupCount", ge=0
    )
    log_max_age_days: float = Field(
        default=DEFAULT_LOG_MAX_AGE_DAYS, alias="LogMaxAgeDays", ge=0
    )

    @field_validator("dest_dirs")
    @classmethod
    def _no_blank_destinations(cls, value: list[str]) -> list[str]:
        if any(not d.strip() for d in value):
            raise ValueError("destination paths must not be blank")
        return value


def _format_validation_error(error: ValidationError) -> str:
    """Turn a pydantic error into one readable line per problem."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def build_plan(document: ConfigDocument) -> SyncPlan:
    """Build a SyncPlan from a validated document.

    Raises:
        ConfigurationError: If the source does not exist or the plan is invalid.
    """
    source = Path(document.source_dir).expanduser()
    if not source.exists():
        raise ConfigurationError(f"Source directory does not exist: {source}")

    try:
        return SyncPlan(
            source_path=source,
            destinations=tuple(Path(d).expanduser() for d in document.dest_dirs),
            exclusions=tuple(document.exclusions),
            tool_options=tuple(document.options.split()),
            max_parallel_jobs=document.max_parallel_jobs,
            tool_path=document.tool_path,
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def load_plan(config_path: Path) -> LoadedConfig:
    """Load and validate a configuration file.

    Args:
        config_path: Path to the JSON configuration file.

    Returns:
        The sync plan, retry policy and log settings it describes.

    Raises:
        ConfigurationError: If the file is missing, not JSON, fails the
            schema, or names a source directory that does not exist.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path}: top-level value must be an object")

    try:
        document = ConfigDocument.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {_format_validation_error(e)}"
        ) from e

    plan = build_plan(document)
    policy = RetryPolicy(
        max_retries=document.max_retries,
        initial_delay=document.retry_delay_seconds,
        backoff_multiplier=document.backoff_multiplier,
    )

    log_dir = Path(document.log_dir).expanduser() if document.log_dir else Path("logs")
    if not log_dir.is_absolute():
        log_dir = config_path.parent / log_dir
    log_settings = LogSettings(
        log_dir=log_dir,
        max_bytes=document.log_max_bytes,
        backup_count=document.log_backup_count,
        max_age_days=document.log_max_age_days,
    )

    return LoadedConfig(plan=plan, policy=policy, logging=log_settings)
