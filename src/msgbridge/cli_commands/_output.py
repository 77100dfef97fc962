"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from msgbridge.settings.models import ProxySettings  # noqa: TC001

console = Console()


def backend_rows(settings: ProxySettings) -> list[dict[str, Any]]:
    """Summarize configured backends without exposing credentials."""
    return [
        {
            "name": name,
            "provider": config.litellm_provider(name),
            "api_base": config.api_base,
            "api_key": bool(config.api_key),
            "default": name == settings.default_backend,
        }
        for name, config in sorted(settings.backends.items())
    ]


def print_backends(settings: ProxySettings, *, as_json: bool = False) -> None:
    """Pretty-print configured backends as a table, or as JSON."""
    rows = backend_rows(settings)
    if as_json:
        console.print_json(json.dumps(rows))
        return

    if not rows:
        console.print("[yellow]No backends configured.[/yellow]")
        return

    table = Table(title="Configured Backends")
    table.add_column("Name", style="cyan")
    table.add_column("LiteLLM provider")
    table.add_column("Endpoint")
    table.add_column("Key")
    table.add_column("Default")

    for row in rows:
        table.add_row(
            row["name"],
            row["provider"],
            _truncate(row["api_base"] or "-"),
            "set" if row["api_key"] else "-",
            "yes" if row["default"] else "",
        )

    console.print(table)


def _truncate(text: str, max_len: int = 60) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
