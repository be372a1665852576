"""Main Typer application — imports and registers all CLI commands.

Entry point: ``launchenv`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from launchenv.cli.commands.check import check_cmd
from launchenv.cli.commands.receivers import receivers_cmd
from launchenv.cli.commands.sync import sync_cmd
from launchenv.config import config

app = typer.Typer(
    name="launchenv",
    help="Propagate environment variables to session services over D-Bus.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="sync", help="Propagate variables to the session services.")(sync_cmd)
app.command(name="check", help="Check variables against the receivers' rules.")(check_cmd)
app.command(name="receivers", help="List the configured receivers.")(receivers_cmd)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """launchenv: update the launch environment of the running session."""
    logging.basicConfig(
        level="DEBUG" if verbose else config.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
