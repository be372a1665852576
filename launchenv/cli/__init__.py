"""launchenv CLI — Typer application."""
