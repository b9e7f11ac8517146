"""Project CLI commands.

Operator access to the project lifecycle: status history, manual status
changes and re-sending a stalled kickoff.
"""

from __future__ import annotations

from typing import Annotated, Any, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sprintflow.cli.runtime import UserOption, run_with_services
from sprintflow.database.models.project import ProjectStatus

app = typer.Typer(help="Project lifecycle commands")
console = Console()


def _format_time(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


@app.command()
def history(
    project_id: Annotated[UUID, typer.Argument(help="Project ID")],
    user: UserOption,
) -> None:
    """Show a project's status history, newest first."""
    entries = run_with_services(
        lambda services: services.lifecycle.project_history(project_id, user)
    )

    if not entries:
        console.print("[yellow]No status changes recorded[/yellow]")
        return

    table = Table(title="Status History")
    table.add_column("Changed", style="dim")
    table.add_column("From")
    table.add_column("To", style="bold")
    table.add_column("By")
    for entry in entries:
        table.add_row(
            _format_time(entry.changed_at),
            entry.old_status.value,
            entry.new_status.value,
            entry.changed_by,
        )
    console.print(table)


@app.command()
def transition(
    project_id: Annotated[UUID, typer.Argument(help="Project ID")],
    target: Annotated[ProjectStatus, typer.Argument(help="Target status")],
    user: UserOption,
    expected: Annotated[
        Optional[ProjectStatus],
        typer.Option("--expected", "-e", help="Status you expect the project to be in"),
    ] = None,
) -> None:
    """Move a project to a new status."""
    project = run_with_services(
        lambda services: services.lifecycle.change_status(project_id, user, target, expected)
    )
    console.print(
        Panel(
            f"[bold]Project:[/bold] {project.name}\n"
            f"[bold]Status:[/bold] {project.status.value}\n"
            f"[bold]Archived:[/bold] {_format_time(project.archived_at)}",
            title="Status Changed",
            border_style="green",
        )
    )


@app.command()
def reinitiate(
    project_id: Annotated[UUID, typer.Argument(help="Project ID")],
    user: UserOption,
) -> None:
    """Re-send the kickoff event for a project in progress."""
    result = run_with_services(
        lambda services: services.recovery.reinitiate_project(project_id, user)
    )
    if result.event_sent:
        console.print(
            f"[green]Re-sent {result.event_name} for sprint {result.sprint_number}[/green]"
        )
    else:
        console.print(f"[yellow]Could not deliver {result.event_name}; check event bus[/yellow]")
        raise typer.Exit(code=2)
