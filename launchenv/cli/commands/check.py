"""``launchenv check`` — show how each variable would be propagated.

Exits with code 1 when any name would be skipped entirely.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from launchenv.core.snapshot import EnvironmentSnapshot
from launchenv.core.validator import (
    is_strictly_transmissible_value,
    is_valid_identifier,
)

console = Console()


def check_cmd(
    assignments: list[str] = typer.Argument(..., help="NAME=VALUE pairs to check."),
) -> None:
    """Check NAME=VALUE pairs against the receivers' rules."""
    try:
        snapshot = EnvironmentSnapshot.from_assignments(assignments)
    except ValueError as exc:
        console.print(f"[red]Invalid assignment:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    table = Table(title="Variable check")
    table.add_column("Name", style="cyan")
    table.add_column("Name valid", justify="center")
    table.add_column("systemd value", justify="center")
    table.add_column("Result")

    rejected = 0
    for name, value in snapshot.items():
        name_ok = is_valid_identifier(name)
        value_ok = is_strictly_transmissible_value(value)
        if not name_ok:
            rejected += 1
            result = "[red]skipped[/red]"
        elif value_ok:
            result = "[green]all receivers[/green]"
        else:
            result = "[yellow]all but systemd[/yellow]"
        table.add_row(
            escape(repr(name) if not name_ok else name),
            "[green]Yes[/green]" if name_ok else "[red]No[/red]",
            "[green]Yes[/green]" if value_ok else "[yellow]No[/yellow]",
            result,
        )

    console.print(table)
    if rejected:
        raise typer.Exit(code=1)
