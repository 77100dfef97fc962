"""``msgbridge serve`` — run the proxy server."""

from __future__ import annotations

import logging
import sys

import click

from msgbridge.cli_commands._output import console


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file. Defaults to reading the environment.",
)
@click.option("--host", default=None, help="Interface to bind.")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on.")
@click.option("--verbose", "-v", count=True, help="Raise the debug level (repeatable, max 2).")
@click.option("--telemetry", is_flag=True, help="Enable telemetry.")
def serve(
    config_path: str | None,
    host: str | None,
    port: int | None,
    verbose: int,
    telemetry: bool,
) -> None:
    """Serve the messages API on HOST:PORT."""
    import uvicorn

    from msgbridge.server.app import create_app
    from msgbridge.settings.errors import SettingsValidationError
    from msgbridge.settings.loader import load_settings
    from msgbridge.utils.logging import level_for, setup_logging

    try:
        settings = load_settings(config_path)
    except SettingsValidationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    overrides: dict[str, object] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if verbose:
        overrides["debug"] = min(2, max(settings.debug, verbose))
    if overrides:
        settings = settings.model_copy(update=overrides)
    if telemetry:
        settings.telemetry.enabled = True

    setup_logging(settings.debug)

    if settings.telemetry.enabled:
        from msgbridge.utils.telemetry import configure_telemetry

        try:
            configure_telemetry(otlp_endpoint=settings.telemetry.otlp_endpoint)
        except ImportError as exc:
            console.print(f"[red]Telemetry error:[/red] {exc}")
            sys.exit(1)

    console.print(f"msgbridge listening on http://{settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=logging.getLevelName(level_for(settings.debug)).lower(),
    )
