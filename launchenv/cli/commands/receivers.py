"""``launchenv receivers`` — list the session services an update reaches."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from launchenv.models.receivers import DEFAULT_RECEIVERS

console = Console()


def receivers_cmd() -> None:
    """List the configured receivers."""
    table = Table(title="Receivers")
    table.add_column("Label", style="cyan")
    table.add_column("Role")
    table.add_column("Service")
    table.add_column("Path")
    table.add_column("Method")
    table.add_column("Signature", justify="center")

    for endpoint in DEFAULT_RECEIVERS.endpoints:
        table.add_row(
            endpoint.label,
            endpoint.role.value,
            endpoint.service,
            endpoint.object_path,
            f"{endpoint.interface}.{endpoint.method}",
            endpoint.signature,
        )
    console.print(table)
