"""Command-line interface for mirrorsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- run: Validate then mirror every destination
- validate: Dry run only
- show-config: Print the resolved plan
"""

from __future__ import annotations

import click

from mirrorsync.cli.commands import run, show_config, validate


@click.group()
@click.version_option(package_name="mirrorsync")
def cli() -> None:
    """MirrorSync - Mirror one folder into several destinations with robocopy."""


cli.add_command(run)
cli.add_command(validate)
cli.add_command(show_config)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
]
