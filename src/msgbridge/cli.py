"""msgbridge CLI entrypoint."""

from __future__ import annotations

import click

from msgbridge import __version__


@click.group()
@click.version_option(version=__version__, prog_name="msgbridge")
def main() -> None:
    """msgbridge — messages API proxy for other model backends."""


# Register subcommands
from msgbridge.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
