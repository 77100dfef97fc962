"""``msgbridge backends`` — list the backends requests can be routed to."""

from __future__ import annotations

import sys

import click

from msgbridge.cli_commands._output import console, print_backends


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file. Defaults to reading the environment.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def backends(config_path: str | None, as_json: bool) -> None:
    """Show configured backends and the default route."""
    from msgbridge.settings.errors import SettingsValidationError
    from msgbridge.settings.loader import load_settings

    try:
        settings = load_settings(config_path)
    except SettingsValidationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    print_backends(settings, as_json=as_json)
    if not as_json:
        target = settings.default_backend or settings.upstream_url
        console.print(f"Models without a backend prefix go to: {target}")
