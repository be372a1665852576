"""``launchenv sync`` — push variables to the session services.

Variables come from ``NAME=VALUE`` arguments, from the current process
environment (``--all-env`` or ``--only NAME``), or both; explicit
assignments win.  Receivers that are missing or reject the update are
reported but never make the command fail.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from launchenv.bridge.transport import LocalTransport, SessionBusTransport
from launchenv.config import config
from launchenv.core.job import update_launch_environment
from launchenv.core.snapshot import EnvironmentSnapshot
from launchenv.models.requests import JobSummary, OutgoingRequest

console = Console()


def _build_snapshot(
    assignments: list[str],
    all_env: bool,
    only: list[str],
) -> EnvironmentSnapshot:
    variables: dict[str, str] = {}
    if all_env:
        variables.update(EnvironmentSnapshot.from_os_environ())
    elif only:
        variables.update(EnvironmentSnapshot.from_os_environ(only))
    variables.update(EnvironmentSnapshot.from_assignments(assignments))
    return EnvironmentSnapshot(variables)


async def _run(
    snapshot: EnvironmentSnapshot, dry_run: bool
) -> tuple[JobSummary, list[OutgoingRequest]]:
    if dry_run:
        local = LocalTransport(max_local_queue=config.max_local_queue)
        summary = await update_launch_environment(snapshot, local)
        return summary, local.drain()

    async with SessionBusTransport(
        config.bus_address, call_timeout_seconds=config.call_timeout_seconds
    ) as transport:
        summary = await update_launch_environment(snapshot, transport)
    return summary, []


def _describe_arguments(request: OutgoingRequest) -> str:
    (first, *rest) = request.arguments
    if isinstance(first, dict):
        return f"{len(first)} variables"
    if isinstance(first, list):
        return f"{len(first)} assignments"
    return "=".join([first, *rest])


def sync_cmd(
    assignments: list[str] = typer.Argument(
        None, help="NAME=VALUE pairs to propagate."
    ),
    all_env: bool = typer.Option(
        False, "--all-env", help="Propagate the whole current environment."
    ),
    only: list[str] = typer.Option(
        None, "--only", "-o", help="Propagate this variable from the current environment."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Record the calls instead of sending them."
    ),
) -> None:
    """Propagate environment variables to the session services."""
    assignments = assignments or []
    only = only or []

    if not assignments and not all_env and not only:
        console.print("[red]Nothing to sync.[/red] Pass NAME=VALUE, --only or --all-env.")
        raise typer.Exit(code=2)

    try:
        snapshot = _build_snapshot(assignments, all_env, only)
    except ValueError as exc:
        console.print(f"[red]Invalid assignment:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    dry_run = dry_run or config.dry_run
    summary, recorded = asyncio.run(_run(snapshot, dry_run))

    if recorded:
        table = Table(title="Recorded calls (dry run)")
        table.add_column("Receiver", style="cyan")
        table.add_column("Method")
        table.add_column("Arguments")
        for request in recorded:
            table.add_row(
                request.endpoint.label,
                request.operation,
                escape(_describe_arguments(request)),
            )
        console.print(table)

    lines = [
        f"[bold]Variables:[/bold]   {len(snapshot)}",
        f"[bold]Calls:[/bold]       {summary.dispatched}",
        f"[bold]Succeeded:[/bold]   [green]{summary.succeeded}[/green]",
        f"[bold]Failed:[/bold]      "
        + (f"[yellow]{summary.failed}[/yellow]" if summary.failed else "0"),
    ]
    if summary.skipped_names:
        lines.append(
            f"[bold]Skipped:[/bold]     {escape(', '.join(summary.skipped_names))} "
            "[dim](unsupported name)[/dim]"
        )
    if summary.non_strict_names:
        lines.append(
            f"[bold]Not in systemd:[/bold] {escape(', '.join(summary.non_strict_names))} "
            "[dim](control characters in value)[/dim]"
        )
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Launch environment[/bold]"
            + (" [dim](dry run)[/dim]" if dry_run else ""),
            border_style="green" if not summary.failed else "yellow",
            padding=(1, 2),
        )
    )
