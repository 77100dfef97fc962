"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from msgbridge.cli_commands.backends import backends
    from msgbridge.cli_commands.serve import serve

    cli.add_command(serve)
    cli.add_command(backends)
