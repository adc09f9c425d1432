"""Commands for the mirrorsync CLI.

Commands:
- run: Dry run every destination, then mirror them in parallel
- validate: Dry run only
- show-config: Print the resolved plan and tool command lines
"""

from __future__ import annotations

import dataclasses
import logging
import signal
import subprocess
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from mirrorsync.core.config import LoadedConfig, load_plan
from mirrorsync.core.errors import ConfigurationError, SyncCancelledError, ValidationFailure
from mirrorsync.logs import setup_logging
from mirrorsync.notifications import NullNotifier, default_notifier
from mirrorsync.sync.classifier import describe
from mirrorsync.sync.orchestrator import SyncOrchestrator
from mirrorsync.sync.runner import ProcessRunner, build_arguments
from mirrorsync.sync.types import ExecutionResult
from mirrorsync.sync.validator import DryRunValidator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "config.json"

config_option = click.option(
    "--config", "-c", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG,
    show_default=True,
    help="JSON configuration file.",
)
tool_option = click.option(
    "--tool", "tool_path",
    default=None,
    help="Mirroring tool executable (overrides ToolPath).",
)
log_dir_option = click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Log directory (overrides LogDir).",
)
verbose_option = click.option(
    "--verbose", "-v", is_flag=True, help="Show progress messages on the console."
)


def _load_config(config_path: Path, tool_path: str | None) -> LoadedConfig:
    """Load the configuration or exit with status 1."""
    try:
        loaded = load_plan(config_path)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if tool_path:
        loaded = dataclasses.replace(
            loaded, plan=dataclasses.replace(loaded.plan, tool_path=tool_path)
        )
    return loaded


def _configure_logging(loaded: LoadedConfig, log_dir: Path | None, verbose: bool) -> None:
    settings = loaded.logging
    if settings is None:
        setup_logging(log_dir, verbose=verbose)
        return
    setup_logging(
        log_dir or settings.log_dir,
        max_bytes=settings.max_bytes,
        backup_count=settings.backup_count,
        max_age_days=settings.max_age_days,
        verbose=verbose,
    )


@contextmanager
def _cancel_on_signals() -> Iterator[threading.Event]:
    """Set an event on SIGINT/SIGTERM while the block runs."""
    cancel_event = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel_event
        return

    def handle(signum: int, frame: object) -> None:
        if not cancel_event.is_set():
            click.echo("Stop requested, terminating running copies...", err=True)
        cancel_event.set()

    signals = [signal.SIGINT]
    if hasattr(signal, "SIGTERM"):
        signals.append(signal.SIGTERM)
    previous = {sig: signal.signal(sig, handle) for sig in signals}
    try:
        yield cancel_event
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _format_result(result: ExecutionResult) -> str:
    status = "OK" if result.ok else "FAILED"
    line = (
        f"  [{status}] {result.destination} - exit code {result.exit_code} "
        f"({describe(result.exit_code)}), {result.attempts} attempt(s), "
        f"{result.duration:.1f}s"
    )
    if result.error_detail and not result.ok:
        line += f"\n           {result.error_detail}"
    return line


@click.command()
@config_option
@tool_option
@log_dir_option
@click.option("--no-notify", is_flag=True, help="Disable desktop notifications.")
@verbose_option
def run(
    config_path: Path,
    tool_path: str | None,
    log_dir: Path | None,
    no_notify: bool,
    verbose: bool,
) -> None:
    """Mirror the source into every destination.

    All destinations are dry-run first; the real copy starts only if every
    dry run succeeds. Exits 1 if the dry run or the configuration fails.
    """
    setup_logging(verbose=verbose)
    loaded = _load_config(config_path, tool_path)
    _configure_logging(loaded, log_dir, verbose)

    notifier = NullNotifier() if no_notify else default_notifier()

    with _cancel_on_signals() as cancel_event:
        orchestrator = SyncOrchestrator(
            loaded.policy,
            notifier=notifier,
            runner=ProcessRunner(cancel_event=cancel_event, capture_output=verbose),
            cancel_event=cancel_event,
        )
        report = orchestrator.run(loaded.plan)

    click.echo(f"Dry run ({len(report.validation_results)} tested):")
    for result in report.validation_results:
        click.echo(_format_result(result))

    if report.results:
        click.echo(f"Mirror ({len(report.results)} destination(s)):")
        for result in report.results:
            click.echo(_format_result(result))

    if report.error:
        click.echo(f"Error: {report.error}", err=True)
    elif report.fully_successful:
        click.echo("All destinations mirrored successfully.")
    else:
        click.echo(
            f"{len(report.failed_destinations)} destination(s) failed; "
            f"see the error log for details."
        )

    sys.exit(report.exit_code)


@click.command()
@config_option
@tool_option
@log_dir_option
@verbose_option
def validate(
    config_path: Path,
    tool_path: str | None,
    log_dir: Path | None,
    verbose: bool,
) -> None:
    """Dry-run every destination without copying anything."""
    setup_logging(verbose=verbose)
    loaded = _load_config(config_path, tool_path)
    _configure_logging(loaded, log_dir, verbose)

    with _cancel_on_signals() as cancel_event:
        validator = DryRunValidator(ProcessRunner(cancel_event=cancel_event))
        try:
            outcome = validator.require_pass(loaded.plan)
        except ValidationFailure as e:
            for result in e.results:
                click.echo(_format_result(result))
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        except (OSError, SyncCancelledError) as e:
            logger.error(f"Dry run aborted: {e}")
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    for result in outcome.results:
        click.echo(_format_result(result))
    click.echo("Dry run passed for all destinations.")


@click.command("show-config")
@config_option
@tool_option
def show_config(config_path: Path, tool_path: str | None) -> None:
    """Show the resolved plan and the command run for each destination."""
    loaded = _load_config(config_path, tool_path)
    plan = loaded.plan
    policy = loaded.policy

    click.echo(f"Source:        {plan.source_path}")
    click.echo(f"Tool:          {plan.tool_path}")
    click.echo(f"Options:       {' '.join(plan.tool_options)}")
    click.echo(f"Exclusions:    {', '.join(plan.exclusions) or '(none)'}")
    click.echo(f"Parallel jobs: {plan.max_parallel_jobs}")
    click.echo(
        f"Retries:       {policy.max_retries} "
        f"(initial delay {policy.initial_delay:g}s, x{policy.backoff_multiplier:g})"
    )
    if loaded.logging is not None:
        click.echo(f"Log directory: {loaded.logging.log_dir}")
    click.echo("Destinations:")
    for destination in plan.destinations:
        argv = [plan.tool_path, *build_arguments(plan, destination)]
        click.echo(f"  {destination}")
        click.echo(f"    {subprocess.list2cmdline(argv)}")
